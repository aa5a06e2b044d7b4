from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest

from rebaseledger import env as env_mod
from rebaseledger.runtime.chain_config import ledger_config_from_dict
from rebaseledger.runtime.executor import LedgerExecutor
from rebaseledger.util.jsonlog import log_event


def test_log_event_emits_one_json_object(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("rebaseledger.test")
    with caplog.at_level(logging.INFO, logger="rebaseledger.test"):
        log_event(logger, "token_minted", to="alice", amount=5)

    rec = json.loads(caplog.records[-1].getMessage())
    assert rec["event"] == "token_minted"
    assert rec["amount"] == 5
    assert isinstance(rec["ts_ms"], int)


def test_executor_logs_ledger_events(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    cfg = ledger_config_from_dict(
        {"chain_id": "log-chain", "mode": "dev", "require_signatures": False, "genesis_native": {"alice": 10}}
    )
    ex = LedgerExecutor(db_path=str(tmp_path / "l.db"), chain_id="log-chain", config=cfg, clock=lambda: 1_000)

    with caplog.at_level(logging.INFO, logger="rebaseledger.executor"):
        ex.submit_tx({"tx_type": "VAULT_DEPOSIT", "signer": "alice", "nonce": 1, "payload": {}, "value": 10})
        ex.submit_tx({"tx_type": "RATE_SET", "signer": "alice", "nonce": 2, "payload": {"rate": 1}})

    events = [json.loads(r.getMessage())["event"] for r in caplog.records if r.name == "rebaseledger.executor"]
    assert "token_minted" in events
    assert "vault_deposit" in events
    assert "tx_applied" in events
    assert events[-1] == "tx_rejected"


def test_dotenv_loads_once_without_overriding(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / ".env"
    p.write_text("REBASE_TEST_A=from_file\nREBASE_TEST_B=from_file\n", encoding="utf-8")
    monkeypatch.setenv("REBASE_TEST_B", "from_env")
    monkeypatch.delenv("REBASE_TEST_A", raising=False)
    env_mod.reset_for_tests()

    try:
        assert env_mod.load_dotenv_if_present(str(p)) is True
        assert os.environ["REBASE_TEST_A"] == "from_file"
        assert os.environ["REBASE_TEST_B"] == "from_env"
        assert env_mod.load_dotenv_if_present(str(p)) is False
    finally:
        monkeypatch.delenv("REBASE_TEST_A", raising=False)
        env_mod.reset_for_tests()
