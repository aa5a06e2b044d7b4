from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient


class _FakeExecutor(SimpleNamespace):
    """Minimal executor stub for API lifecycle tests."""


def test_create_app_boot_runtime_false_does_not_attach_executor() -> None:
    from rebaseledger.api.app import create_app

    app = create_app(boot_runtime=False)
    assert getattr(app.state, "executor", None) is None

    with TestClient(app) as client:
        r = client.get("/v1/health")
        assert r.status_code == 200
        assert r.json()["executor"] is False

        # Routes that need the executor fail with a structured error.
        r2 = client.get("/v1/ledger")
        assert r2.status_code == 500
        assert r2.json()["error"]["code"] == "not_ready"


def test_create_app_boot_runtime_true_attaches_executor(monkeypatch: pytest.MonkeyPatch) -> None:
    from rebaseledger.api import app as api_app

    def _fake_build_executor():
        return _FakeExecutor(chain_id="rebase-test")

    monkeypatch.setattr(api_app, "build_executor", _fake_build_executor)

    app = api_app.create_app(boot_runtime=True)
    assert getattr(app.state.executor, "chain_id", "") == "rebase-test"


def test_request_size_limit_returns_413(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REBASE_MAX_REQUEST_BYTES", "128")
    monkeypatch.delenv("REBASE_SIZE_LIMIT_DISABLE", raising=False)

    from rebaseledger.api.app import create_app

    c = TestClient(create_app(boot_runtime=False))
    r = c.post("/v1/tx/submit", json={"tx_type": "TOKEN_TRANSFER", "signer": "a", "nonce": 1, "pad": "x" * 500})
    assert r.status_code == 413
    assert r.json()["error"]["code"] == "tx_too_large"
