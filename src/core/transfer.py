# /src/core/transfer.py
# Routes token and deposit transfers to the right balance: the caller's
# external token balance or its internal balance on the ledger.
from typing import List, Sequence

from src.core.errors import SenderMismatchError, UnsupportedModeError
from src.core.logger import get_logger
from src.core.operations import FromMode, ToMode
from src.core.state import checksum
from src.core.tx import CallContext

log = get_logger(__name__)

class TransferRouter:
    def transfer_token(self, ctx: CallContext, token: str, recipient: str, amount: int, from_mode: int, to_mode: int):
        """Moves `amount` of the caller's `token` to `recipient`.

        EXTERNAL sources spend the allowance the caller gave the depot and
        ignore `to_mode`. INTERNAL sources ask the ledger to move the caller's
        internal balance, landing it according to `to_mode`.
        """
        if to_mode not in (ToMode.EXTERNAL, ToMode.INTERNAL):
            raise UnsupportedModeError("Depot: mode not supported")
        if from_mode == FromMode.EXTERNAL:
            ctx.state.transfer_from(token, self.address, ctx.caller, recipient, amount)
        elif from_mode == FromMode.INTERNAL:
            self.ledger.transfer_internal_token_from(
                ctx.call_as(self.address), token, ctx.caller, recipient, amount, to_mode
            )
        else:
            raise UnsupportedModeError("Depot: mode not supported")
        log.info("TOKEN_TRANSFER_ROUTED", token=token, sender=ctx.caller, recipient=recipient, amount=amount,
                 from_mode=int(from_mode), to_mode=int(to_mode))

    def transfer_deposit(self, ctx: CallContext, sender: str, recipient: str, token: str, season: int, amount: int) -> int:
        self._require_sender(ctx, sender)
        return self.ledger.transfer_deposit(ctx.call_as(self.address), sender, recipient, token, season, amount)

    def transfer_deposits(self, ctx: CallContext, sender: str, recipient: str, token: str,
                          seasons: Sequence[int], amounts: Sequence[int]) -> List[int]:
        self._require_sender(ctx, sender)
        return self.ledger.transfer_deposits(ctx.call_as(self.address), sender, recipient, token, list(seasons), list(amounts))

    def _require_sender(self, ctx: CallContext, sender: str):
        # A batch step cannot move someone else's deposits by naming them.
        if checksum(sender) != ctx.caller:
            log.warning("DEPOSIT_SENDER_MISMATCH", declared=sender, caller=ctx.caller)
            raise SenderMismatchError("Depot: invalid sender")
