from __future__ import annotations

import json
from pathlib import Path

import pytest

from rebaseledger.ledger.constants import INITIAL_GLOBAL_RATE
from rebaseledger.runtime.chain_config import (
    default_ledger_config,
    ledger_config_from_dict,
    load_ledger_config,
    read_ledger_config_file,
)


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "REBASE_CONFIG_PATH",
        "REBASE_CHAIN_ID",
        "REBASE_DB_PATH",
        "REBASE_MODE",
        "REBASE_LOG_LEVEL",
        "REBASE_API_HOST",
        "REBASE_API_PORT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_are_strict() -> None:
    cfg = default_ledger_config()
    assert cfg.mode == "prod"
    assert cfg.require_signatures is True
    assert cfg.initial_global_rate == INITIAL_GLOBAL_RATE


def test_yaml_file_is_parsed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    p = tmp_path / "ledger.yaml"
    p.write_text(
        "chain_id: yaml-chain\n"
        "mode: dev\n"
        "require_signatures: false\n"
        "genesis_keys:\n"
        "  alice: abcd\n"
        "genesis_native:\n"
        "  alice: 100\n",
        encoding="utf-8",
    )
    cfg = read_ledger_config_file(str(p))
    assert cfg.chain_id == "yaml-chain"
    assert cfg.require_signatures is False
    assert cfg.genesis_keys == {"alice": ["abcd"]}
    assert cfg.genesis_native == {"alice": 100}


def test_json_file_and_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    p = tmp_path / "ledger.json"
    p.write_text(json.dumps({"chain_id": "json-chain", "mode": "testnet", "api_port": 9000}), encoding="utf-8")
    monkeypatch.setenv("REBASE_CONFIG_PATH", str(p))
    monkeypatch.setenv("REBASE_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("REBASE_API_PORT", "9100")

    cfg = load_ledger_config()
    assert cfg.chain_id == "json-chain"
    assert cfg.mode == "testnet"
    assert cfg.db_path == str(tmp_path / "x.db")
    assert cfg.api_port == 9100


@pytest.mark.parametrize(
    "raw,msg",
    [
        ({"mode": "chaos"}, "mode"),
        ({"api_port": 70000}, "api_port"),
        ({"vault_account": "SYSTEM"}, "distinct"),
        ({"initial_global_rate": -1}, "initial_global_rate"),
        ({"mode": "prod", "require_signatures": False}, "require_signatures"),
        ({"genesis_native": {"alice": -5}}, "genesis_native"),
    ],
)
def test_invalid_config_fails_fast(raw: dict, msg: str) -> None:
    with pytest.raises(ValueError) as ei:
        ledger_config_from_dict(raw)
    assert msg in str(ei.value)
