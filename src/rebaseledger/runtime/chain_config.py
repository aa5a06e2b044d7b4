# src/rebaseledger/runtime/chain_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from rebaseledger.ledger.constants import (
    DEFAULT_BRIDGE_POOL_ACCOUNT,
    DEFAULT_OWNER,
    DEFAULT_TOKEN_ID,
    DEFAULT_VAULT_ACCOUNT,
    INITIAL_GLOBAL_RATE,
    SYSTEM_SIGNER,
)

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _as_keys(v: Any) -> Dict[str, List[str]]:
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise ValueError("genesis_keys must be a mapping of account -> [pubkey, ...]")
    out: Dict[str, List[str]] = {}
    for acct, keys in v.items():
        if isinstance(keys, str):
            keys = [keys]
        if not isinstance(keys, list):
            raise ValueError(f"genesis_keys[{acct!r}] must be a list of pubkeys")
        out[str(acct)] = [str(k).strip() for k in keys if str(k).strip()]
    return out


def _as_balances(v: Any) -> Dict[str, int]:
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise ValueError("genesis_native must be a mapping of account -> amount")
    return {str(acct): int(amount) for acct, amount in v.items()}


@dataclass(frozen=True)
class LedgerConfig:
    chain_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Single SQLite DB file path for ledger snapshot + receipts.
    db_path: str

    api_host: str
    api_port: int
    log_level: str

    owner: str
    token_id: str
    vault_account: str
    bridge_pool_account: str
    system_signer: str

    initial_global_rate: int
    require_signatures: bool

    genesis_keys: Dict[str, List[str]] = field(default_factory=dict)
    genesis_native: Dict[str, int] = field(default_factory=dict)


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_ledger_config(cfg: LedgerConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.chain_id, str) or not cfg.chain_id.strip():
        raise ValueError("chain_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    for name in ("owner", "token_id", "vault_account", "bridge_pool_account", "system_signer"):
        v = getattr(cfg, name)
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"{name} must be a non-empty string")

    special = {cfg.vault_account, cfg.bridge_pool_account, cfg.system_signer}
    if len(special) != 3:
        raise ValueError("vault_account, bridge_pool_account and system_signer must be distinct")

    if int(cfg.initial_global_rate) < 0:
        raise ValueError(f"initial_global_rate must be >= 0; got: {cfg.initial_global_rate}")

    for acct, amount in cfg.genesis_native.items():
        if int(amount) < 0:
            raise ValueError(f"genesis_native[{acct!r}] must be >= 0")

    # Unsigned operation is a dev-only posture.
    if mode == "prod" and not cfg.require_signatures:
        raise ValueError("require_signatures cannot be disabled in prod mode")


def default_ledger_config() -> LedgerConfig:
    return LedgerConfig(
        chain_id="rebase-dev",
        # Without an explicit config file we stay in the strict posture.
        mode="prod",
        db_path="./data/rebaseledger.db",
        api_host="127.0.0.1",
        api_port=8000,
        log_level="INFO",
        owner=DEFAULT_OWNER,
        token_id=DEFAULT_TOKEN_ID,
        vault_account=DEFAULT_VAULT_ACCOUNT,
        bridge_pool_account=DEFAULT_BRIDGE_POOL_ACCOUNT,
        system_signer=SYSTEM_SIGNER,
        initial_global_rate=INITIAL_GLOBAL_RATE,
        require_signatures=True,
        genesis_keys={},
        genesis_native={},
    )


def _read_raw(p: Path) -> Json:
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("ledger config must be a mapping/object")
    return raw


def ledger_config_from_dict(raw: Json) -> LedgerConfig:
    d = default_ledger_config()

    cfg = LedgerConfig(
        chain_id=_as_str(raw.get("chain_id"), d.chain_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
        owner=_as_str(raw.get("owner"), d.owner),
        token_id=_as_str(raw.get("token_id"), d.token_id),
        vault_account=_as_str(raw.get("vault_account"), d.vault_account),
        bridge_pool_account=_as_str(raw.get("bridge_pool_account"), d.bridge_pool_account),
        system_signer=_as_str(raw.get("system_signer"), d.system_signer),
        initial_global_rate=_as_int(raw.get("initial_global_rate"), d.initial_global_rate),
        require_signatures=_as_bool(raw.get("require_signatures"), d.require_signatures),
        genesis_keys=_as_keys(raw.get("genesis_keys")),
        genesis_native=_as_balances(raw.get("genesis_native")),
    )

    validate_ledger_config(cfg)
    return cfg


def read_ledger_config_file(path: str) -> LedgerConfig:
    return ledger_config_from_dict(_read_raw(Path(path)))


def _apply_env_overrides(cfg: LedgerConfig) -> LedgerConfig:
    changes: Json = {}
    for env_name, attr in (
        ("REBASE_CHAIN_ID", "chain_id"),
        ("REBASE_DB_PATH", "db_path"),
        ("REBASE_MODE", "mode"),
        ("REBASE_LOG_LEVEL", "log_level"),
        ("REBASE_API_HOST", "api_host"),
    ):
        raw = (os.environ.get(env_name) or "").strip()
        if raw:
            changes[attr] = raw.lower() if attr == "mode" else raw

    port = (os.environ.get("REBASE_API_PORT") or "").strip()
    if port:
        changes["api_port"] = _as_int(port, cfg.api_port)

    if not changes:
        return cfg
    out = replace(cfg, **changes)
    validate_ledger_config(out)
    return out


def load_ledger_config(*, config_path: Optional[str] = None) -> LedgerConfig:
    p = config_path or os.environ.get("REBASE_CONFIG_PATH")
    if p:
        cfg = read_ledger_config_file(p)
    else:
        cfg = default_ledger_config()
        validate_ledger_config(cfg)
    return _apply_env_overrides(cfg)
