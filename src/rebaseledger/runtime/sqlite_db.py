# src/rebaseledger/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding for persisted state and receipts.

    Unknown types are not coerced (no default=str): a non-JSON value leaking
    into ledger state must fail loudly.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the ledger runtime.

    - one durable DB file for the ledger snapshot + receipts
    - connections are never shared across threads
    - writes go through write_tx(), which retries BEGIN IMMEDIATE on lock contention
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """FULL in prod, NORMAL elsewhere; REBASE_SQLITE_SYNCHRONOUS overrides."""
        mode = (os.environ.get("REBASE_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("REBASE_SQLITE_SYNCHRONOUS") or default).strip().upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("REBASE_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0
        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        allow_non_wal = (os.environ.get("REBASE_SQLITE_ALLOW_NON_WAL") or "").strip().lower() in {"1", "true"}
        if mode and mode != "wal" and not allow_non_wal:
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        busy_ms = max(0, _env_int("REBASE_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")
        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  height INTEGER NOT NULL,
                  tip_ts_ms INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS receipts (
                  tx_id TEXT PRIMARY KEY,
                  height INTEGER NOT NULL,
                  tx_type TEXT NOT NULL,
                  signer TEXT NOT NULL,
                  ok INTEGER NOT NULL,
                  ts_ms INTEGER NOT NULL,
                  receipt_json TEXT NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_receipts_height ON receipts(height);")
            con.execute("CREATE INDEX IF NOT EXISTS idx_receipts_signer ON receipts(signer);")

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except ValueError:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    def _backoff(self, attempt: int) -> None:
        base_s = max(0.001, float(_env_int("REBASE_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_s = max(base_s, float(_env_int("REBASE_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)
        sleep_s = min(max_s, base_s * (2.0 ** min(attempt, 8)))
        time.sleep(sleep_s * (0.5 + random.random()))

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE (and COMMIT) until a deadline
          - exponential backoff with jitter
          - then raise (fail closed)
        """
        deadline_ts = _now_ms() + max(250, _env_int("REBASE_SQLITE_WRITE_DEADLINE_MS", 30_000))

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    self._backoff(attempt)
                    attempt += 1

            try:
                yield con

                attempt = 0
                while True:
                    try:
                        con.execute("COMMIT;")
                        break
                    except sqlite3.OperationalError as e:
                        if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                            raise
                        self._backoff(attempt)
                        attempt += 1
            except BaseException:
                con.execute("ROLLBACK;")
                raise


class SqliteLedgerStore:
    """Ledger snapshot + receipt store persisted in SQLite.

    - read(): load the latest ledger snapshot
    - commit(st, receipt): overwrite the snapshot and append a receipt atomically
    - get_receipt()/list_receipts(): receipt lookups

    The authoritative snapshot is a single row.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @property
    def db(self) -> SqliteDB:
        return self._db

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
            if row is None:
                raise FileNotFoundError("sqlite ledger_state is missing")
            st = json.loads(str(row["state_json"]))
            if not isinstance(st, dict):
                raise ValueError("ledger_state is not a JSON object")
            return st

    @staticmethod
    def _upsert_state(con: sqlite3.Connection, st: Json) -> None:
        con.execute(
            """
            INSERT INTO ledger_state(id, height, tip_ts_ms, state_json, updated_ts_ms)
            VALUES(1, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              height=excluded.height,
              tip_ts_ms=excluded.tip_ts_ms,
              state_json=excluded.state_json,
              updated_ts_ms=excluded.updated_ts_ms;
            """,
            (int(st.get("height", 0)), int(st.get("tip_ts_ms", 0)), _canon_json(st), _now_ms()),
        )

    def write(self, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        with self._db.write_tx() as con:
            self._upsert_state(con, st)

    def commit(self, st: Json, receipt: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        with self._db.write_tx() as con:
            self._upsert_state(con, st)
            con.execute(
                """
                INSERT INTO receipts(tx_id, height, tx_type, signer, ok, ts_ms, receipt_json)
                VALUES(?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    str(receipt["tx_id"]),
                    int(receipt["height"]),
                    str(receipt.get("tx_type") or ""),
                    str(receipt.get("signer") or ""),
                    1 if receipt.get("ok") else 0,
                    int(receipt["ts_ms"]),
                    _canon_json(receipt),
                ),
            )

    def has_receipt(self, tx_id: str) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM receipts WHERE tx_id=?;", (str(tx_id),)).fetchone() is not None

    def get_receipt(self, tx_id: str) -> Optional[Json]:
        with self._db.connection() as con:
            row = con.execute("SELECT receipt_json FROM receipts WHERE tx_id=?;", (str(tx_id),)).fetchone()
            if row is None:
                return None
            return json.loads(str(row["receipt_json"]))

    def list_receipts(self, *, signer: Optional[str] = None, limit: int = 50) -> List[Json]:
        limit = max(1, min(int(limit), 1000))
        with self._db.connection() as con:
            if signer:
                rows = con.execute(
                    "SELECT receipt_json FROM receipts WHERE signer=? ORDER BY height DESC LIMIT ?;",
                    (str(signer), limit),
                ).fetchall()
            else:
                rows = con.execute(
                    "SELECT receipt_json FROM receipts ORDER BY height DESC LIMIT ?;",
                    (limit,),
                ).fetchall()
        return [json.loads(str(r["receipt_json"])) for r in rows]
