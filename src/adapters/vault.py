# /src/adapters/vault.py
# - In-process flash loan vault with Balancer calling conventions.
# - Lends its own token balances, calls the recipient back synchronously and
#   refuses to return unless every loan came back with its fee.

from typing import List, Protocol, Sequence

from src.core.errors import Revert
from src.core.logger import get_logger
from src.core.state import checksum
from src.core.tx import CallContext

log = get_logger(__name__)

FEE_SCALE = 10**18

class VaultError(Revert):
    pass

class FlashLoanRecipient(Protocol):
    address: str

    def receive_flash_loan(self, ctx: CallContext, tokens: List[str], amounts: List[int], fee_amounts: List[int], user_data: bytes): ...

class FlashLoanVault:
    def __init__(self, address: str, fee_percentage: int = 0):
        self.address = checksum(address)
        self.fee_percentage = fee_percentage
        log.info("VAULT_INITIALIZED", address=self.address, fee_percentage=fee_percentage)

    def fee_for(self, amount: int) -> int:
        # Rounded up so the vault never undercharges.
        return -(-amount * self.fee_percentage // FEE_SCALE)

    def flash_loan(self, ctx: CallContext, recipient: FlashLoanRecipient, tokens: Sequence[str], amounts: Sequence[int], user_data: bytes):
        """
        Lends `amounts` of `tokens` to `recipient` for the duration of its
        `receive_flash_loan` callback.

        Args:
            ctx: the call into the vault; `ctx.caller` is whoever asked for the loan.
            recipient: receives the tokens and the callback.
            tokens: unique token addresses.
            amounts: amount per token, index-aligned with `tokens`.
            user_data: opaque bytes handed back to the recipient untouched.
        """
        tokens = [checksum(t) for t in tokens]
        amounts = list(amounts)
        if len(tokens) != len(amounts):
            raise VaultError("Vault: input length mismatch")
        if len(set(tokens)) != len(tokens):
            raise VaultError("Vault: duplicate token")

        fees = [self.fee_for(amount) for amount in amounts]
        pre_balances = [ctx.state.balance_of(token, self.address) for token in tokens]
        for token, amount, balance in zip(tokens, amounts, pre_balances):
            if amount > balance:
                raise VaultError("Vault: insufficient flash loan balance")
            ctx.state.transfer(token, self.address, recipient.address, amount)

        log.info("VAULT_FLASHLOAN_ISSUED", recipient=recipient.address, tokens=tokens, amounts=amounts, fees=fees)
        recipient.receive_flash_loan(ctx.call_as(self.address), list(tokens), list(amounts), list(fees), user_data)

        for token, fee, pre in zip(tokens, fees, pre_balances):
            post = ctx.state.balance_of(token, self.address)
            if post < pre:
                log.error("VAULT_FLASHLOAN_NOT_REPAID", token=token, pre=pre, post=post)
                raise VaultError("Vault: invalid post loan balance")
            if post - pre < fee:
                log.error("VAULT_FLASHLOAN_FEE_NOT_PAID", token=token, fee=fee, received=post - pre)
                raise VaultError("Vault: insufficient flash loan fee amount")
        log.info("VAULT_FLASHLOAN_REPAID", recipient=recipient.address, tokens=tokens)
