import os
from fastapi.testclient import TestClient

from src.core.control_api import app
from src.core.config import settings
from src.core.kill import KILL_SWITCH_FILE

def test_healthz_is_public():
    r = TestClient(app).get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "kill_switch_active": False}

def test_status_requires_token(monkeypatch):
    monkeypatch.setattr(settings, "CONTROL_API_TOKEN", "tok")
    client = TestClient(app)
    assert client.get("/status").status_code == 401

    r = client.get("/status", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 200
    assert r.json()["vault"] == settings.VAULT_ADDRESS

def test_kill_toggle(monkeypatch):
    monkeypatch.setattr(settings, "CONTROL_API_TOKEN", "tok")
    client = TestClient(app)
    r = client.post("/kill/toggle", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 200 and r.json()["kill_switch_active"] is True
    assert os.path.exists(KILL_SWITCH_FILE)
    r = client.post("/kill/toggle", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 200 and r.json()["kill_switch_active"] is False
    assert not os.path.exists(KILL_SWITCH_FILE)
