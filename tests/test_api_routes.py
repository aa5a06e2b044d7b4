from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from rebaseledger.api.app import create_app
from rebaseledger.ledger.constants import INITIAL_GLOBAL_RATE
from rebaseledger.runtime.chain_config import ledger_config_from_dict
from rebaseledger.runtime.executor import LedgerExecutor

D = 10**18


class FakeClock:
    def __init__(self, ms: int = 2_000_000) -> None:
        self.ms = ms

    def __call__(self) -> int:
        return self.ms


@pytest.fixture()
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("REBASE_MODE", "dev")
    monkeypatch.setenv("REBASE_BRIDGE_TOKEN", "s3cret")
    monkeypatch.setenv("REBASE_LOG_REQUESTS", "0")

    cfg = ledger_config_from_dict(
        {"chain_id": "api-chain", "mode": "dev", "require_signatures": False, "genesis_native": {"alice": D}}
    )
    clock = FakeClock()
    ex = LedgerExecutor(db_path=str(tmp_path / "api.db"), chain_id="api-chain", config=cfg, clock=clock)

    app = create_app(boot_runtime=False)
    app.state.executor = ex
    return TestClient(app), ex, clock


def _tx(tx_type: str, signer: str, nonce: int, payload: dict | None = None, value: int = 0) -> dict:
    return {"tx_type": tx_type, "signer": signer, "nonce": nonce, "payload": payload or {}, "value": value}


def test_ledger_and_vault_views(env) -> None:
    client, _, _ = env
    j = client.get("/v1/ledger").json()
    assert j["global_rate"] == INITIAL_GLOBAL_RATE
    assert j["precision"] == 10**18
    assert j["mint_and_burn"] == ["BRIDGE_POOL", "VAULT"]

    vj = client.get("/v1/vault").json()
    assert vj["vault_account"] == "VAULT"
    assert vj["rebase_token"] == "RBT"
    assert vj["reserve"] == 0


def test_submit_deposit_and_read_account(env) -> None:
    client, _, clock = env
    r = client.post("/v1/tx/submit", json=_tx("VAULT_DEPOSIT", "alice", 1, value=1_000))
    assert r.status_code == 200
    receipt = r.json()["receipt"]
    assert receipt["ok"] is True

    clock.ms += 100_000
    a = client.get("/v1/accounts/alice").json()
    assert a["principal"] == 1_000
    assert a["rate"] == INITIAL_GLOBAL_RATE
    assert a["nonce"] == 1
    assert a["balance"] == 1_000 * (10**18 + INITIAL_GLOBAL_RATE * 100) // 10**18

    got = client.get(f"/v1/tx/{receipt['tx_id']}")
    assert got.status_code == 200
    assert got.json()["receipt"] == receipt

    listed = client.get("/v1/receipts", params={"signer": "alice"}).json()
    assert [x["tx_id"] for x in listed["receipts"]] == [receipt["tx_id"]]


def test_applied_failure_returns_receipt_and_admission_reject_raises(env) -> None:
    client, _, _ = env
    r = client.post("/v1/tx/submit", json=_tx("RATE_SET", "alice", 1, {"rate": 1}))
    assert r.status_code == 200
    assert r.json()["ok"] is False
    assert r.json()["receipt"]["error"]["code"] == "forbidden"

    r2 = client.post("/v1/tx/submit", json=_tx("RATE_SET", "alice", 1, {"rate": 1}))
    assert r2.status_code == 409
    assert r2.json()["error"]["code"] == "bad_nonce"


def test_public_endpoint_rejects_system_txs(env) -> None:
    client, _, _ = env
    body = _tx("NATIVE_CREDIT", "SYSTEM", 0, {"account": "alice", "amount": 5})
    body["system"] = True
    r = client.post("/v1/tx/submit", json=body)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "system_tx_forbidden"


def test_bad_body_is_422(env) -> None:
    client, _, _ = env
    r = client.post("/v1/tx/submit", json={"tx_type": "TOKEN_TRANSFER", "signer": "alice", "nonce": -1})
    assert r.status_code == 422


def test_unknown_receipt_is_404(env) -> None:
    client, _, _ = env
    r = client.get("/v1/tx/deadbeef")
    assert r.status_code == 404


def test_bridge_lock_outbox_and_gated_release(env) -> None:
    client, _, _ = env
    client.post("/v1/tx/submit", json=_tx("VAULT_DEPOSIT", "alice", 1, value=1_000))
    lock = client.post(
        "/v1/tx/submit",
        json=_tx("BRIDGE_LOCK", "alice", 2, {"amount": 300, "dest_chain": "api-chain", "receiver": "bob"}),
    )
    assert lock.json()["receipt"]["ok"] is True

    outbox = client.get("/v1/bridge/outbox").json()["messages"]
    assert len(outbox) == 1
    msg = outbox[0]

    assert client.post("/v1/bridge/release", json={"message": msg}).status_code == 401
    denied = client.post("/v1/bridge/release", json={"message": msg}, headers={"Authorization": "Bearer nope"})
    assert denied.status_code == 403

    auth = {"Authorization": "Bearer s3cret"}
    ok = client.post("/v1/bridge/release", json={"message": msg}, headers=auth)
    assert ok.status_code == 200
    assert ok.json()["receipt"]["ok"] is True

    bob = client.get("/v1/accounts/bob").json()
    assert bob["principal"] == 300
    assert bob["rate"] == INITIAL_GLOBAL_RATE

    again = client.post("/v1/bridge/release", json={"message": msg}, headers=auth)
    assert again.json()["ok"] is False
    assert again.json()["receipt"]["error"]["code"] == "conflict"


def test_allowance_route(env) -> None:
    client, _, _ = env
    client.post("/v1/tx/submit", json=_tx("TOKEN_APPROVE", "alice", 1, {"spender": "carol", "amount": 77}))
    j = client.get("/v1/accounts/alice/allowances/carol").json()
    assert j["allowance"] == 77
