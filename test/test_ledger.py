import pytest

from src.adapters.ledger import LedgerError
from src.core.tx import CallContext, Transaction

from conftest import ALICE, BEAN, BOB, DEPOT

def _ctx(sandbox, caller):
    return CallContext(Transaction(sandbox.state, caller), caller)

def test_deposit_moves_bdv_pro_rata(sandbox):
    ledger = sandbox.ledger
    bdv = ledger.transfer_deposit(_ctx(sandbox, ALICE), ALICE, BOB, BEAN, 5, 25)

    assert bdv == 20
    assert ledger.deposit(sandbox.state, ALICE, BEAN, 5).model_dump() == {"amount": 75, "bdv": 60}
    assert ledger.deposit(sandbox.state, BOB, BEAN, 5).model_dump() == {"amount": 25, "bdv": 20}

def test_emptied_crate_is_removed(sandbox):
    ledger = sandbox.ledger
    ledger.transfer_deposits(_ctx(sandbox, ALICE), ALICE, BOB, BEAN, [5], [100])
    assert 5 not in sandbox.state.deposits[ALICE][BEAN]

def test_overdrawn_crate_reverts(sandbox):
    with pytest.raises(LedgerError, match="Crate balance too low"):
        sandbox.ledger.transfer_deposit(_ctx(sandbox, ALICE), ALICE, BOB, BEAN, 5, 101)

def test_zero_amount_reverts(sandbox):
    with pytest.raises(LedgerError, match="greater than 0"):
        sandbox.ledger.transfer_deposit(_ctx(sandbox, ALICE), ALICE, BOB, BEAN, 5, 0)

def test_third_party_needs_deposit_allowance(sandbox):
    ledger = sandbox.ledger
    with pytest.raises(LedgerError, match="Silo: insufficient allowance"):
        ledger.transfer_deposit(_ctx(sandbox, DEPOT), ALICE, BOB, BEAN, 5, 10)

    ledger._set_allowance(sandbox.state.deposit_allowances, ALICE, DEPOT, BEAN, 30)
    ledger.transfer_deposits(_ctx(sandbox, DEPOT), ALICE, BOB, BEAN, [5, 5], [10, 20])
    assert ledger.deposit_allowance(sandbox.state, ALICE, DEPOT, BEAN) == 0
    assert ledger.deposit(sandbox.state, BOB, BEAN, 5).amount == 30

def test_internal_balance_overdraft_reverts(sandbox):
    with pytest.raises(LedgerError, match="Insufficient internal balance"):
        sandbox.ledger.transfer_internal_token_from(_ctx(sandbox, ALICE), BEAN, ALICE, BOB, 301, 1)

@pytest.mark.parametrize("amounts", [[-40], [10, -40]])
def test_negative_deposit_amounts_revert_before_any_write(sandbox, amounts):
    ledger = sandbox.ledger
    ledger.add_deposit(sandbox.state, BOB, BEAN, 5, 40, 40)
    before = sandbox.state.model_dump()

    with pytest.raises(LedgerError, match="greater than 0"):
        ledger.transfer_deposits(_ctx(sandbox, ALICE), ALICE, BOB, BEAN, [5] * len(amounts), amounts)
    with pytest.raises(LedgerError, match="greater than 0"):
        ledger.transfer_deposit(_ctx(sandbox, ALICE), ALICE, BOB, BEAN, 5, amounts[-1])
    assert sandbox.state.model_dump() == before

def test_negative_internal_amount_reverts_before_any_write(sandbox):
    ledger = sandbox.ledger
    ledger._set_allowance(sandbox.state.token_allowances, ALICE, DEPOT, BEAN, 10)
    before = sandbox.state.model_dump()

    with pytest.raises(LedgerError, match="Token: negative amount"):
        ledger.transfer_internal_token_from(_ctx(sandbox, DEPOT), BEAN, ALICE, BOB, -50, 1)
    assert sandbox.state.model_dump() == before
