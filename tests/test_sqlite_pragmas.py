from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from rebaseledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore


def _pragma(con: sqlite3.Connection, name: str) -> int | str:
    row = con.execute(f"PRAGMA {name};").fetchone()
    if row is None:
        raise AssertionError(f"missing pragma: {name}")
    return row[0]


def test_sqlite_operational_pragmas_are_applied(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REBASE_MODE", "prod")
    monkeypatch.delenv("REBASE_SQLITE_SYNCHRONOUS", raising=False)
    monkeypatch.setenv("REBASE_SQLITE_BUSY_TIMEOUT_MS", "1234")

    db = SqliteDB(path=str(tmp_path / "ledger.db"))
    db.init_schema()

    with db.connection() as con:
        assert str(_pragma(con, "journal_mode")).lower() == "wal"
        # FULL is the prod default.
        assert int(_pragma(con, "synchronous")) == 2
        assert int(_pragma(con, "foreign_keys")) == 1
        assert int(_pragma(con, "busy_timeout")) == 1234


def test_schema_version_mismatch_refuses(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "ledger.db"))
    db.init_schema()
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError):
        db.init_schema()


def test_commit_writes_state_and_receipt_together(tmp_path: Path) -> None:
    store = SqliteLedgerStore(db=SqliteDB(path=str(tmp_path / "ledger.db")))
    assert store.exists() is False

    st = {"height": 1, "tip_ts_ms": 5, "accounts": {}}
    receipt = {"tx_id": "t1", "height": 1, "ts_ms": 5, "tx_type": "X", "signer": "a", "ok": True}
    store.commit(st, receipt)

    assert store.read() == st
    assert store.get_receipt("t1") == receipt
    assert store.get_receipt("missing") is None

    # Duplicate tx_id aborts the whole commit.
    with pytest.raises(sqlite3.IntegrityError):
        store.commit({"height": 2, "tip_ts_ms": 6}, receipt)
    assert store.read() == st
