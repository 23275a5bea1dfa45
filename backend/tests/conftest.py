import base64
import json
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fakes import TEST_WEBHOOK_SECRET


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("ALLOW_UNVERIFIED_JWT_DEV", "true")
    monkeypatch.setenv("USE_REDIS_STORE", "false")


@pytest.fixture
def stores(monkeypatch: pytest.MonkeyPatch):
    from interview_hub.db import stores as store_module
    from interview_hub.db.interview_store import LocalInterviewStore
    from interview_hub.db.user_store import LocalUserStore

    monkeypatch.setattr(store_module, "user_store", LocalUserStore())
    monkeypatch.setattr(store_module, "interview_store", LocalInterviewStore())
    return store_module


@pytest.fixture
def webhook_secret(monkeypatch: pytest.MonkeyPatch) -> str:
    from core import config

    monkeypatch.setattr(config, "CLERK_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)
    return TEST_WEBHOOK_SECRET


@pytest.fixture
def client(stores, webhook_secret):
    from fastapi.testclient import TestClient

    from interview_hub.main import app

    return TestClient(app)


def _enc(obj: dict) -> str:
    raw = json.dumps(obj, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


@pytest.fixture
def make_token():
    def _make(sub: str) -> str:
        header = _enc({"alg": "none", "typ": "JWT"})
        payload = _enc({"sub": sub, "iat": 0})
        return f"{header}.{payload}."

    return _make


@pytest.fixture
def dev_jwt_token(make_token) -> str:
    return make_token("pytest-user")
