# src/rebaseledger/runtime/executor_boot.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rebaseledger.runtime.chain_config import LedgerConfig, load_ledger_config
from rebaseledger.runtime.executor import LedgerExecutor


@dataclass
class ExecutorBootConfig:
    db_path: str
    chain_id: str
    ledger: LedgerConfig


def boot_config_from_env() -> ExecutorBootConfig:
    cfg = load_ledger_config()
    return ExecutorBootConfig(db_path=cfg.db_path, chain_id=cfg.chain_id, ledger=cfg)


def build_executor(cfg: Optional[ExecutorBootConfig] = None) -> LedgerExecutor:
    """
    Build a LedgerExecutor from an explicit boot config or, if omitted,
    from the config file / environment.

    `rebaseledger.api.app` calls this with no args in production.
    """
    c = cfg or boot_config_from_env()
    return LedgerExecutor(db_path=c.db_path, chain_id=c.chain_id, config=c.ledger)
