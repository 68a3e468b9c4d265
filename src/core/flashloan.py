# /src/core/flashloan.py
# Flash loan settlement: borrow from the vault, run one operation while the
# loan is out, pay the principal back before the vault regains control.
import uuid
from dataclasses import dataclass, field, replace
from typing import List, Sequence, Tuple, Union

from src.core.errors import LoanStateError, UnauthorizedCallbackError
from src.core.logger import get_logger, CALLBACKS_REJECTED, FLASHLOANS_SETTLED
from src.core.operations import Operation
from src.core.state import checksum
from src.core.tx import CallContext

log = get_logger(__name__)

@dataclass(frozen=True)
class ActiveLoan:
    """The single outstanding loan of a transaction."""
    initiator: str
    tokens: Tuple[str, ...]
    amounts: Tuple[int, ...]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    in_callback: bool = False

class FlashLoanEngine:
    def flash_loan(self, ctx: CallContext, tokens: Sequence[str], amounts: Sequence[int], data: Union[Operation, bytes]):
        """
        Borrows `amounts` of `tokens` and runs `data` while they are held.

        `data` is exactly one operation; wrap several in a Farm. It runs with
        the caller of this method as its caller. The vault reverts the whole
        call if the principal (plus any fee it charges) is not back when the
        callback returns.
        """
        payload = data.encode() if isinstance(data, Operation) else bytes(data)
        if not payload:
            raise LoanStateError("FlashLoan: empty operation")
        if ctx.tx.active_loan is not None:
            raise LoanStateError("FlashLoan: loan already outstanding")

        tokens = [checksum(t) for t in tokens]
        amounts = list(amounts)
        loan = ActiveLoan(initiator=ctx.caller, tokens=tuple(tokens), amounts=tuple(amounts))
        log.info("FLASHLOAN_REQUESTED", loan_id=loan.id, initiator=loan.initiator, tokens=tokens, amounts=amounts)

        with ctx.tx.checkpoint():
            ctx.tx.active_loan = loan
            try:
                self.vault.flash_loan(ctx.call_as(self.address), self, tokens, amounts, payload)
            finally:
                ctx.tx.active_loan = None

        FLASHLOANS_SETTLED.inc()
        log.info("FLASHLOAN_SETTLED", loan_id=loan.id, tokens=tokens, amounts=amounts)

    def receive_flash_loan(self, ctx: CallContext, tokens: List[str], amounts: List[int], fee_amounts: List[int], user_data: bytes):
        """Vault callback. Only the vault may call it, and only for the loan this transaction requested."""
        if ctx.caller != self.vault.address:
            self._reject(ctx, "FlashLoan: caller is not the vault")
        loan = ctx.tx.active_loan
        if loan is None or loan.in_callback:
            self._reject(ctx, "FlashLoan: no loan outstanding")
        if tuple(checksum(t) for t in tokens) != loan.tokens or tuple(amounts) != loan.amounts:
            self._reject(ctx, "FlashLoan: callback does not match request")
        if any(fee_amounts):
            # Repayment is principal only, so the vault will refuse this loan.
            log.error("FLASHLOAN_FEE_NOT_REPAID", loan_id=loan.id, fees=list(fee_amounts),
                      detail="vault charges a fee; only the principal is repaid and the loan will revert")

        ctx.tx.active_loan = replace(loan, in_callback=True)
        self.farm(ctx.call_as(loan.initiator), [user_data])
        self._repay(ctx.call_as(self.address), loan)

    def _repay(self, ctx: CallContext, loan: ActiveLoan):
        # Principal only; fees are not computed.
        for token, amount in zip(loan.tokens, loan.amounts):
            ctx.state.transfer(token, self.address, self.vault.address, amount)
        log.info("FLASHLOAN_REPAID", loan_id=loan.id, tokens=list(loan.tokens), amounts=list(loan.amounts))

    def _reject(self, ctx: CallContext, reason: str):
        CALLBACKS_REJECTED.inc()
        log.critical("FLASHLOAN_CALLBACK_REJECTED", caller=ctx.caller, reason=reason)
        raise UnauthorizedCallbackError(reason)
