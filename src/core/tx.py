# /src/core/tx.py
# Transaction boundary: every call runs against a private copy of the world
# state, which is committed only if the call returns.
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Optional

from src.core.kill import check, KillSwitchActiveError
from src.core.logger import (
    get_logger,
    bind_transaction,
    clear_transaction,
    KILL_TRIGGERED,
    TRANSACTIONS_COMMITTED,
    TRANSACTIONS_REVERTED,
)
from src.core.state import WorldState, checksum

log = get_logger(__name__)

class TransactionKillSwitchError(Exception):
    pass

class Transaction:
    """Mutable state scoped to one top-level call."""
    def __init__(self, state: WorldState, origin: str):
        self.id = uuid.uuid4().hex
        self.state = state
        self.origin = checksum(origin)
        # Single-flight flash loan slot, owned by the settlement engine.
        self.active_loan = None

    @contextmanager
    def checkpoint(self):
        """Restores state and the loan slot if the body raises."""
        saved_state = self.state.snapshot()
        saved_loan = self.active_loan
        try:
            yield
        except BaseException:
            self.state = saved_state
            self.active_loan = saved_loan
            raise

class CallContext:
    """What a handler sees: the shared transaction and its immediate caller."""
    def __init__(self, tx: Transaction, caller: str):
        self.tx = tx
        self.caller = checksum(caller)

    @property
    def state(self) -> WorldState:
        return self.tx.state

    @property
    def timestamp(self) -> int:
        return self.tx.state.timestamp

    def call_as(self, caller: str) -> "CallContext":
        return CallContext(self.tx, caller)

class TransactionManager:
    """Holds committed world state and applies transactions all-or-nothing."""
    def __init__(self, state: Optional[WorldState] = None):
        self.state = state if state is not None else WorldState()
        self.receipts = []

    def execute(self, sender: str, fn: Callable[..., Any], *args, timestamp: Optional[int] = None, **kwargs) -> Any:
        """
        Runs `fn(ctx, *args, **kwargs)` as `sender`.

        Args:
            sender: the account originating the transaction.
            fn: any depot entry point (or other callable taking a CallContext).
            timestamp: execution time for this transaction; defaults to the
                       committed state's timestamp.

        Returns:
            Whatever `fn` returns. On any exception the committed state is
            left exactly as it was and the exception propagates.
        """
        try:
            check()
        except KillSwitchActiveError:
            KILL_TRIGGERED.inc()
            log.critical("TRANSACTION_BLOCKED_BY_KILL_SWITCH", sender=sender, call=getattr(fn, "__name__", str(fn)))
            raise TransactionKillSwitchError("Kill switch is active. Halting transaction.")

        tx = Transaction(self.state.snapshot(), sender)
        if timestamp is not None:
            tx.state.timestamp = timestamp
        bind_transaction(tx.id, tx.origin)
        try:
            result = fn(CallContext(tx, tx.origin), *args, **kwargs)
        except Exception as e:
            TRANSACTIONS_REVERTED.inc()
            log.error("TRANSACTION_REVERTED", call=getattr(fn, "__name__", str(fn)), error=str(e), error_type=type(e).__name__)
            self.receipts.append({"tx_id": tx.id, "origin": tx.origin, "status": "reverted", "error": str(e)})
            raise
        finally:
            clear_transaction()

        self.state = tx.state
        TRANSACTIONS_COMMITTED.inc()
        log.info("TRANSACTION_COMMITTED", tx_id=tx.id, origin=tx.origin)
        self.receipts.append({"tx_id": tx.id, "origin": tx.origin, "status": "committed"})
        return result
