# Run before deploying a sandbox to validate the collaborator configuration.
from web3 import Web3

from src.core.config import settings
from src.core.logger import log

def validate():
    log.info("--- CONFIG VALIDATION START ---")
    required_vars = ['DEPOT_ADDRESS', 'VAULT_ADDRESS', 'LEDGER_ADDRESS']
    errors = []

    addresses = {}
    for var in required_vars:
        value = getattr(settings, var, None)
        if not value:
            errors.append(f"Missing required configuration: {var}")
        elif not Web3.is_address(value):
            errors.append(f"Invalid address for {var}: {value}")
        else:
            addresses[var] = Web3.to_checksum_address(value)

    if len(set(addresses.values())) != len(addresses):
        errors.append("Depot, vault and ledger must have distinct addresses")
    if settings.FLASH_LOAN_FEE_PERCENTAGE < 0:
        errors.append("FLASH_LOAN_FEE_PERCENTAGE must not be negative")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---")

if __name__ == "__main__":
    validate()
