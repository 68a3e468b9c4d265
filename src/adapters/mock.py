# /src/adapters/mock.py
# - Recording stand-in for the ledger, used to prove the depot forwards
#   calls unmodified and stops before the ledger when it should.

from typing import Any, List, Tuple

from src.adapters.ledger import LedgerError
from src.core.logger import get_logger
from src.core.state import checksum
from src.core.tx import CallContext

log = get_logger(__name__)

class MockLedger:
    """
    Accepts every ledger call, records (name, caller, args) and returns
    configurable bdv values. It never touches world state.
    """
    def __init__(self, address: str = "0x000000000000000000000000000000000000bea0", bdv: int = 0):
        self.address = checksum(address)
        self.bdv = bdv
        self.calls: List[Tuple[str, str, tuple]] = []
        self._must_fail = None
        log.info("MOCK_LEDGER_INITIALIZED", address=self.address)

    def set_next_call_to_fail(self, reason: str = "Mock: forced failure"):
        """Configure the mock to revert on the next call."""
        self._must_fail = reason

    def _record(self, name: str, ctx: CallContext, *args) -> None:
        if self._must_fail is not None:
            reason, self._must_fail = self._must_fail, None
            log.error("MOCK_LEDGER_FORCED_FAILURE", call=name)
            raise LedgerError(reason)
        self.calls.append((name, ctx.caller, args))
        log.info("MOCK_LEDGER_CALL", call=name, caller=ctx.caller)

    def transfer_internal_token_from(self, ctx, token, sender, recipient, amount, to_mode):
        self._record("transfer_internal_token_from", ctx, token, sender, recipient, amount, to_mode)

    def transfer_deposit(self, ctx, sender, recipient, token, season, amount) -> int:
        self._record("transfer_deposit", ctx, sender, recipient, token, season, amount)
        return self.bdv

    def transfer_deposits(self, ctx, sender, recipient, token, seasons, amounts) -> List[int]:
        self._record("transfer_deposits", ctx, sender, recipient, token, seasons, amounts)
        return [self.bdv for _ in seasons]

    def permit_token(self, ctx, *args: Any):
        self._record("permit_token", ctx, *args)

    def permit_deposit(self, ctx, *args: Any):
        self._record("permit_deposit", ctx, *args)

    def permit_deposits(self, ctx, *args: Any):
        self._record("permit_deposits", ctx, *args)
