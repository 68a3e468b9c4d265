# /src/core/depot.py
# The depot: a single contract surface that batches transfers, permits and
# flash loans into one atomic unit of execution.
from typing import Any, Callable, Dict

from src.core.farm import BatchExecutor
from src.core.flashloan import FlashLoanEngine
from src.core.logger import get_logger
from src.core.operations import Operation, OperationKind
from src.core.permit import PermitRelay
from src.core.state import checksum
from src.core.transfer import TransferRouter
from src.core.tx import CallContext

log = get_logger(__name__)

class Depot(BatchExecutor, TransferRouter, PermitRelay, FlashLoanEngine):
    """
    Every public method takes the CallContext of the call into the depot as
    its first argument; `ctx.caller` is the account acting.

    The vault and ledger are fixed for the depot's lifetime.
    """
    def __init__(self, address: str, vault, ledger):
        self._address = checksum(address)
        self._vault = vault
        self._ledger = ledger
        self._handlers: Dict[OperationKind, Callable[..., Any]] = {
            OperationKind.FARM: self.farm,
            OperationKind.TRANSFER_TOKEN: self.transfer_token,
            OperationKind.TRANSFER_DEPOSIT: self.transfer_deposit,
            OperationKind.TRANSFER_DEPOSITS: self.transfer_deposits,
            OperationKind.PERMIT_TOKEN: self.permit_token,
            OperationKind.PERMIT_DEPOSIT: self.permit_deposit,
            OperationKind.PERMIT_DEPOSITS: self.permit_deposits,
            OperationKind.FLASH_LOAN: self.flash_loan,
        }
        log.info("DEPOT_INITIALIZED", address=self._address, vault=vault.address, ledger=ledger.address)

    @property
    def address(self) -> str:
        return self._address

    @property
    def vault(self):
        return self._vault

    @property
    def ledger(self):
        return self._ledger

    def dispatch(self, ctx: CallContext, op: Operation) -> Any:
        """Runs one operation as a call the depot makes to itself."""
        return self._handlers[op.kind](ctx, *op.arguments())
