# /src/core/state.py
# World state shared by the depot and its collaborators within one transaction.
from typing import Dict
from pydantic import BaseModel, Field
from web3 import Web3

from src.core.errors import Revert
from src.core.logger import get_logger

log = get_logger(__name__)

class TokenError(Revert):
    pass

def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)

class Deposit(BaseModel):
    amount: int = 0
    bdv: int = 0

class WorldState(BaseModel):
    """
    Every balance the depot can touch, keyed by checksummed address.

    External token balances follow ERC20 semantics. The remaining maps are the
    ledger's storage (internal balances, deposits, allowances and permit
    nonces); they live here so a single snapshot covers the whole world.
    """
    timestamp: int = 0

    # token -> holder -> amount
    balances: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    # token -> owner -> spender -> amount
    allowances: Dict[str, Dict[str, Dict[str, int]]] = Field(default_factory=dict)

    # account -> token -> amount
    internal_balances: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    # owner -> spender -> token -> amount
    token_allowances: Dict[str, Dict[str, Dict[str, int]]] = Field(default_factory=dict)
    # account -> token -> season -> deposit
    deposits: Dict[str, Dict[str, Dict[int, Deposit]]] = Field(default_factory=dict)
    # owner -> spender -> token -> amount
    deposit_allowances: Dict[str, Dict[str, Dict[str, int]]] = Field(default_factory=dict)
    nonces: Dict[str, int] = Field(default_factory=dict)

    def snapshot(self) -> "WorldState":
        return self.model_copy(deep=True)

    # --- ERC20 ---

    def balance_of(self, token: str, holder: str) -> int:
        return self.balances.get(checksum(token), {}).get(checksum(holder), 0)

    def mint(self, token: str, holder: str, amount: int):
        token, holder = checksum(token), checksum(holder)
        holders = self.balances.setdefault(token, {})
        holders[holder] = holders.get(holder, 0) + amount
        log.debug("TOKEN_MINTED", token=token, holder=holder, amount=amount)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get(checksum(token), {}).get(checksum(owner), {}).get(checksum(spender), 0)

    def approve(self, token: str, owner: str, spender: str, amount: int):
        token, owner, spender = checksum(token), checksum(owner), checksum(spender)
        self.allowances.setdefault(token, {}).setdefault(owner, {})[spender] = amount

    def transfer(self, token: str, sender: str, recipient: str, amount: int):
        if amount < 0:
            raise TokenError("ERC20: negative amount")
        token, sender, recipient = checksum(token), checksum(sender), checksum(recipient)
        holders = self.balances.setdefault(token, {})
        if holders.get(sender, 0) < amount:
            raise TokenError("ERC20: transfer amount exceeds balance")
        holders[sender] = holders.get(sender, 0) - amount
        holders[recipient] = holders.get(recipient, 0) + amount

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int):
        """Moves `owner`'s tokens on behalf of `spender`, consuming allowance."""
        if amount < 0:
            raise TokenError("ERC20: negative amount")
        if checksum(spender) != checksum(owner):
            allowed = self.allowance(token, owner, spender)
            if allowed < amount:
                raise TokenError("ERC20: insufficient allowance")
            self.approve(token, owner, spender, allowed - amount)
        self.transfer(token, owner, recipient, amount)
