import sys
from pydantic_settings import BaseSettings
from pydantic import SecretStr

# Fixed collaborator identities. They are read once at deploy time and never
# mutated by the running depot.
class Settings(BaseSettings):
    # Collaborator addresses
    DEPOT_ADDRESS: str = "0xdeb0f00071497a5cc9b4a6b96068277e57a82ae2"
    VAULT_ADDRESS: str = "0xba12222222228d8ba445958a75a0704d566bf2c8"
    LEDGER_ADDRESS: str = "0xc1e088fc1323b20bcbee9bd1b9fc9546db5624c5"

    # Vault fee, 1e18 fixed point. The depot never pays it.
    FLASH_LOAN_FEE_PERCENTAGE: int = 0

    LOG_SIGNING_KEY: SecretStr | None = None
    SENTRY_DSN: SecretStr | None = None

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    SESSION_DIR: str = "/tmp/depot_session"
    CONTROL_API_TOKEN: str | None = None

    # GCP (optional)
    GCP_PROJECT_ID: str | None = None
    GCP_REGION: str | None = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from src.core.logger import get_logger, configure_logging
        configure_logging()
        log = get_logger("Depot.Config")
        log.critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    sys.exit(1)
