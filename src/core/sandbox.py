# /src/core/sandbox.py
# Deploys the depot next to an in-process vault and ledger that share one
# committed world state.
from typing import Any, Callable, Optional

from src.adapters.ledger import InMemoryLedger
from src.adapters.vault import FlashLoanVault
from src.core.config import settings
from src.core.config_validator import validate as validate_config
from src.core.depot import Depot
from src.core.logger import get_logger
from src.core.state import WorldState
from src.core.tx import TransactionManager

log = get_logger(__name__)

class Sandbox:
    def __init__(self, depot_address: str, vault_address: str, ledger_address: str,
                 fee_percentage: int = 0, state: Optional[WorldState] = None):
        self.tx_manager = TransactionManager(state)
        self.ledger = InMemoryLedger(ledger_address)
        self.vault = FlashLoanVault(vault_address, fee_percentage)
        self.depot = Depot(depot_address, self.vault, self.ledger)

    @classmethod
    def from_settings(cls, state: Optional[WorldState] = None) -> "Sandbox":
        validate_config()
        log.info("SANDBOX_DEPLOYING", depot=settings.DEPOT_ADDRESS, vault=settings.VAULT_ADDRESS, ledger=settings.LEDGER_ADDRESS)
        return cls(
            settings.DEPOT_ADDRESS,
            settings.VAULT_ADDRESS,
            settings.LEDGER_ADDRESS,
            fee_percentage=settings.FLASH_LOAN_FEE_PERCENTAGE,
            state=state,
        )

    @property
    def state(self) -> WorldState:
        """Committed state. Mutate it only to seed balances between transactions."""
        return self.tx_manager.state

    def execute(self, sender: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        return self.tx_manager.execute(sender, fn, *args, **kwargs)
