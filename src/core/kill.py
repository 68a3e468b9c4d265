# /src/core/kill.py
# Operator halt for the depot. While active, no transaction is executed.
import os
from datetime import datetime, timezone
from google.cloud import storage
from google.api_core.exceptions import GoogleAPICallError
from src.core.config import settings
from src.core.logger import get_logger

log = get_logger(__name__)

IS_GCP_CONFIGURED = bool(settings.GCP_PROJECT_ID)
GCS_BUCKET_NAME = f"{settings.GCP_PROJECT_ID}-depot-state" if IS_GCP_CONFIGURED else ""
KILL_SWITCH_BLOB_NAME = "DEPOT_KILL_SWITCH"
KILL_SWITCH_FILE = os.path.join(settings.SESSION_DIR, "depot_kill_activated")

_storage_client = None

class KillSwitchActiveError(Exception):
    pass

def get_gcs_client():
    global _storage_client
    if _storage_client is None and IS_GCP_CONFIGURED:
        try:
            _storage_client = storage.Client()
        except Exception as e:
            log.critical("GCS_CLIENT_INITIALIZATION_FAILED", error=str(e))
            return None
    return _storage_client

def is_kill_switch_active() -> bool:
    client = get_gcs_client()
    if client:
        try:
            return client.bucket(GCS_BUCKET_NAME).blob(KILL_SWITCH_BLOB_NAME).exists()
        except GoogleAPICallError as e:
            # Unknown means halted.
            log.critical("GCS_KILL_SWITCH_CHECK_FAILED", error=str(e))
            return True
    return os.path.exists(KILL_SWITCH_FILE)

def check():
    """Raises KillSwitchActiveError if the depot has been halted."""
    if is_kill_switch_active():
        raise KillSwitchActiveError("Depot halted by kill switch.")

def activate_kill_switch(reason: str):
    timestamp = datetime.now(timezone.utc).isoformat()
    content = f"ACTIVATED at {timestamp}\nREASON: {reason}\n"

    client = get_gcs_client()
    if client:
        try:
            bucket = client.bucket(GCS_BUCKET_NAME)
            if not bucket.exists():
                bucket.create(location=settings.GCP_REGION)
            bucket.blob(KILL_SWITCH_BLOB_NAME).upload_from_string(content, content_type="text/plain")
            log.critical("GCS_KILL_SWITCH_ACTIVATED", reason=reason, bucket=GCS_BUCKET_NAME)
        except GoogleAPICallError as e:
            log.critical("GCS_KILL_SWITCH_ACTIVATION_FAILED", error=str(e))
    else:
        os.makedirs(os.path.dirname(KILL_SWITCH_FILE), exist_ok=True)
        with open(KILL_SWITCH_FILE, "w") as f:
            f.write(content)
        log.critical("LOCAL_KILL_SWITCH_ACTIVATED", reason=reason)

def deactivate_kill_switch():
    client = get_gcs_client()
    if client:
        try:
            blob = client.bucket(GCS_BUCKET_NAME).blob(KILL_SWITCH_BLOB_NAME)
            if blob.exists():
                blob.delete()
            log.warning("GCS_KILL_SWITCH_DEACTIVATED", bucket=GCS_BUCKET_NAME)
        except GoogleAPICallError as e:
            log.critical("GCS_KILL_SWITCH_DEACTIVATION_FAILED", error=str(e))
    elif os.path.exists(KILL_SWITCH_FILE):
        os.remove(KILL_SWITCH_FILE)
        log.warning("LOCAL_KILL_SWITCH_DEACTIVATED")
