# - Flash loan settlement: repayment invariant, callback guard, single flight.

import pytest

from src.adapters.ledger import sign_deposit_permit
from src.adapters.vault import FlashLoanVault, VaultError
from src.core.depot import Depot
from src.core.errors import LoanStateError, StepFailedError, UnauthorizedCallbackError
from src.core.logger import FLASHLOANS_SETTLED, CALLBACKS_REJECTED
from src.core.operations import Farm, FlashLoan, TransferDeposit, TransferToken

from conftest import ALICE, ALICE_KEY, BEAN, BOB, DEADLINE, DEPOT, VAULT, VAULT_LIQUIDITY, WETH

class ShortchangingDepot(Depot):
    """Pays back 10 less of the first token than it borrowed."""
    def _repay(self, ctx, loan):
        for i, (token, amount) in enumerate(zip(loan.tokens, loan.amounts)):
            ctx.state.transfer(token, self.address, self.vault.address, amount - 10 if i == 0 else amount)

def _deposit_move(sandbox, amount=40):
    permit = sign_deposit_permit(sandbox.ledger, sandbox.state, ALICE_KEY, DEPOT, BEAN, amount, DEADLINE)
    move = TransferDeposit(sender=ALICE, recipient=BOB, token=BEAN, season=5, amount=amount)
    return Farm.of(permit, move)

def test_loan_cycle_settles_and_keeps_nested_effects(sandbox):
    """
    GIVEN a loan of 100 BEAN and 50 WETH
    WHEN the nested batch moves a deposit and the principal is repaid
    THEN the vault ends where it started and the deposit move sticks.
    """
    settled = FLASHLOANS_SETTLED._value.get()

    sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN, WETH], [100, 50], _deposit_move(sandbox))

    state = sandbox.state
    assert state.balance_of(BEAN, VAULT) == VAULT_LIQUIDITY
    assert state.balance_of(WETH, VAULT) == VAULT_LIQUIDITY
    assert state.balance_of(BEAN, DEPOT) == 0
    assert state.balance_of(WETH, DEPOT) == 0
    assert sandbox.ledger.deposit(state, BOB, BEAN, 5).amount == 40
    assert sandbox.ledger.deposit(state, BOB, BEAN, 5).bdv == 32
    assert FLASHLOANS_SETTLED._value.get() == settled + 1

def test_loan_accepts_pre_encoded_operation(sandbox):
    sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN], [100], _deposit_move(sandbox).encode())
    assert sandbox.ledger.deposit(sandbox.state, BOB, BEAN, 5).amount == 40

def test_underpaid_loan_voids_everything(sandbox):
    depot = ShortchangingDepot(DEPOT, sandbox.vault, sandbox.ledger)
    before = sandbox.state.model_dump()

    with pytest.raises(VaultError, match="invalid post loan balance"):
        sandbox.execute(ALICE, depot.flash_loan, [BEAN, WETH], [100, 50], _deposit_move(sandbox))

    assert sandbox.state.model_dump() == before
    assert sandbox.ledger.deposit(sandbox.state, BOB, BEAN, 5).amount == 0

class RecordingLog:
    def __init__(self):
        self.events = []

    def _record(self, level):
        return lambda event, **kw: self.events.append((level, event, kw))

    def __getattr__(self, level):
        return self._record(level)

def test_fee_bearing_vault_rejects_principal_only_repayment(sandbox, monkeypatch):
    vault = FlashLoanVault(VAULT, fee_percentage=10**15)  # 0.1%
    depot = Depot(DEPOT, vault, sandbox.ledger)
    recorder = RecordingLog()
    monkeypatch.setattr("src.core.flashloan.log", recorder)

    with pytest.raises(VaultError, match="insufficient flash loan fee amount"):
        sandbox.execute(ALICE, depot.flash_loan, [BEAN], [1_000], _deposit_move(sandbox))

    fee_events = [(level, kw) for level, event, kw in recorder.events if event == "FLASHLOAN_FEE_NOT_REPAID"]
    assert len(fee_events) == 1
    level, kw = fee_events[0]
    assert level == "error"
    assert kw["fees"] == [1]
    assert "will revert" in kw["detail"]

def test_failing_nested_operation_aborts_loan(sandbox):
    overdraw = TransferToken(token=BEAN, recipient=BOB, amount=10_000)

    with pytest.raises(StepFailedError, match="ERC20: insufficient allowance"):
        sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN], [100], overdraw)

    assert sandbox.state.balance_of(BEAN, VAULT) == VAULT_LIQUIDITY
    assert sandbox.state.balance_of(BEAN, DEPOT) == 0

def test_garbage_loan_data_aborts_loan(sandbox):
    with pytest.raises(StepFailedError, match="unknown selector"):
        sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN], [100], b"\x00" * 68)

def test_empty_loan_data_is_rejected_before_borrowing(sandbox):
    with pytest.raises(LoanStateError, match="empty operation"):
        sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN], [100], b"")

def test_loan_larger_than_vault_liquidity_fails(sandbox):
    with pytest.raises(VaultError, match="insufficient flash loan balance"):
        sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN], [VAULT_LIQUIDITY + 1], _deposit_move(sandbox))

def test_nested_loan_is_rejected(sandbox):
    inner = FlashLoan(tokens=[WETH], amounts=[1], data=_deposit_move(sandbox).encode())

    with pytest.raises(StepFailedError, match="loan already outstanding"):
        sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN], [100], inner)

def test_loan_can_be_a_batch_step(sandbox):
    loan = FlashLoan(tokens=[BEAN], amounts=[100], data=_deposit_move(sandbox).encode())

    assert sandbox.execute(ALICE, sandbox.depot.farm, [loan]) == [None]
    assert sandbox.ledger.deposit(sandbox.state, BOB, BEAN, 5).amount == 40

@pytest.mark.parametrize("caller", [ALICE, BOB, DEPOT])
def test_callback_from_non_vault_is_rejected(sandbox, caller):
    rejected = CALLBACKS_REJECTED._value.get()
    data = _deposit_move(sandbox).encode()

    with pytest.raises(UnauthorizedCallbackError, match="caller is not the vault"):
        sandbox.execute(caller, sandbox.depot.receive_flash_loan, [BEAN], [100], [0], data)

    assert CALLBACKS_REJECTED._value.get() == rejected + 1

def test_callback_from_vault_without_loan_is_rejected(sandbox):
    with pytest.raises(UnauthorizedCallbackError, match="no loan outstanding"):
        sandbox.execute(VAULT, sandbox.depot.receive_flash_loan, [BEAN], [100], [0], _deposit_move(sandbox).encode())

def test_callback_must_match_requested_loan(sandbox):
    class LyingVault(FlashLoanVault):
        def flash_loan(self, ctx, recipient, tokens, amounts, user_data):
            recipient.receive_flash_loan(ctx.call_as(self.address), list(tokens), [a * 2 for a in amounts], [0], user_data)

    depot = Depot(DEPOT, LyingVault(VAULT), sandbox.ledger)
    with pytest.raises(UnauthorizedCallbackError, match="does not match request"):
        sandbox.execute(ALICE, depot.flash_loan, [BEAN], [100], _deposit_move(sandbox))

def test_vault_rejects_mismatched_lists(sandbox):
    with pytest.raises(VaultError, match="input length mismatch"):
        sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN, WETH], [100], _deposit_move(sandbox))

def test_vault_rejects_duplicate_tokens(sandbox):
    with pytest.raises(VaultError, match="duplicate token"):
        sandbox.execute(ALICE, sandbox.depot.flash_loan, [BEAN, BEAN], [1, 1], _deposit_move(sandbox))
