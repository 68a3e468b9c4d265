import logging
import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter
from src.core.config import settings
import json
import hmac
import hashlib
import os

# --- Prometheus Metrics ---
BATCHES_EXECUTED = Counter("depot_batches_executed_total", "Total number of batches executed")
BATCH_STEP_FAILURES = Counter("depot_batch_step_failures_total", "Total number of batch steps that reverted", ["kind"])
FLASHLOANS_SETTLED = Counter("depot_flashloans_settled_total", "Total number of flash loans repaid")
CALLBACKS_REJECTED = Counter("depot_flashloan_callbacks_rejected_total", "Flash loan callbacks refused by the guard")
TRANSACTIONS_COMMITTED = Counter("depot_transactions_committed_total", "Transactions whose effects were applied")
TRANSACTIONS_REVERTED = Counter("depot_transactions_reverted_total", "Transactions rolled back to pre-state")
KILL_TRIGGERED = Counter("depot_kill_triggered_total", "Times the kill switch has refused a transaction")

SIGNING_KEY = (
    settings.LOG_SIGNING_KEY.get_secret_value().encode()
    if settings.LOG_SIGNING_KEY
    else b"insecure"
)

AUDIT_FILE = os.path.join(settings.SESSION_DIR, "audit.log")

def sign_and_append(logger, method_name: str, event_dict: dict) -> dict:  # type: ignore[override]
    """Structlog processor that signs each rendered event and appends it to the audit log.

    Follows the processor call signature expected by structlog:

        (logger, method_name, event_dict) -> event_dict
    """
    # Deterministic key order keeps the signature reproducible.
    payload = json.dumps(event_dict, sort_keys=True, default=str)
    sig = hmac.new(SIGNING_KEY, payload.encode(), hashlib.sha256).hexdigest()

    # AUDIT_FILE may be monkey-patched by tests; read it at call time.
    audit_file = str(AUDIT_FILE)
    try:
        with open(audit_file, "a", encoding="utf-8") as f:
            f.write(payload + "|" + sig + "\n")
    except FileNotFoundError:
        os.makedirs(os.path.dirname(audit_file), exist_ok=True)
        with open(audit_file, "a", encoding="utf-8") as f:
            f.write(payload + "|" + sig + "\n")

    event_dict["signature"] = sig
    return event_dict

def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            sign_and_append,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

def get_logger(name: str):
    return structlog.get_logger(name)

def bind_transaction(tx_id: str, origin: str):
    """Tags every event emitted during one transaction with its id and sender."""
    bind_contextvars(tx_id=tx_id, origin=origin)

def clear_transaction():
    structlog.contextvars.unbind_contextvars("tx_id", "origin")

configure_logging()
log = get_logger("Depot.System")
