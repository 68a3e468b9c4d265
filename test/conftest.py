# Shared fixtures: a deployed sandbox with two funded users.
import os
import pytest
from eth_account import Account
from web3 import Web3

from src.core.kill import KILL_SWITCH_FILE
from src.core.sandbox import Sandbox

DEPOT = Web3.to_checksum_address("0x" + "de" * 20)
VAULT = Web3.to_checksum_address("0x" + "ba" * 20)
LEDGER = Web3.to_checksum_address("0x" + "c1" * 20)

BEAN = Web3.to_checksum_address("0x" + "be" * 20)
WETH = Web3.to_checksum_address("0x" + "ee" * 20)

ALICE_KEY = "0x" + "a1" * 32
BOB_KEY = "0x" + "b0" * 32
ALICE = Account.from_key(ALICE_KEY).address
BOB = Account.from_key(BOB_KEY).address

DEADLINE = 10**10
VAULT_LIQUIDITY = 1_000

@pytest.fixture(autouse=True)
def no_kill_switch():
    if os.path.exists(KILL_SWITCH_FILE):
        os.remove(KILL_SWITCH_FILE)
    yield
    if os.path.exists(KILL_SWITCH_FILE):
        os.remove(KILL_SWITCH_FILE)

@pytest.fixture
def sandbox():
    """
    Vault holds 1000 BEAN and 1000 WETH. Alice holds 500 external BEAN (with
    a 500 allowance to the depot), 300 internal BEAN, and a season-5 BEAN
    deposit of 100 worth 80 bdv.
    """
    s = Sandbox(DEPOT, VAULT, LEDGER)
    state = s.state
    state.mint(BEAN, VAULT, VAULT_LIQUIDITY)
    state.mint(WETH, VAULT, VAULT_LIQUIDITY)
    state.mint(BEAN, ALICE, 500)
    state.approve(BEAN, ALICE, DEPOT, 500)
    s.ledger.credit_internal(state, ALICE, BEAN, 300)
    s.ledger.add_deposit(state, ALICE, BEAN, 5, 100, 80)
    return s
