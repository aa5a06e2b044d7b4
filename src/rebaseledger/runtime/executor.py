from __future__ import annotations

import copy
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rebaseledger.ledger.state import LedgerView
from rebaseledger.runtime.chain_config import LedgerConfig, default_ledger_config, load_ledger_config
from rebaseledger.runtime.domain_apply import ApplyError, apply_tx_atomic
from rebaseledger.runtime.genesis import apply_genesis_keys, build_genesis_state
from rebaseledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from rebaseledger.runtime.state_invariants import ledger_invariant_violations
from rebaseledger.runtime.tx_admission import admit_tx
from rebaseledger.runtime.tx_admission_types import TxEnvelope
from rebaseledger.runtime.tx_id import compute_tx_id_from_envelope
from rebaseledger.util.jsonlog import log_event

Json = Dict[str, Any]
Clock = Callable[[], int]

log = logging.getLogger("rebaseledger.executor")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _ensure_parent(path: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


class ExecutorError(RuntimeError):
    pass


class LedgerExecutor:
    """Single-writer ledger executor using SQLite for persistence.

    Envelopes are admitted, applied to a copy of the state, and committed
    together with their receipt. One envelope at a time.
    """

    def __init__(
        self,
        *,
        db_path: str,
        chain_id: str,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.chain_id = str(chain_id)
        self.config = config or default_ledger_config()
        self._clock: Clock = clock or _now_ms
        self._lock = threading.RLock()

        self.db_path = str(db_path)
        _ensure_parent(self.db_path)

        self._db = SqliteDB(path=self.db_path)
        self._ledger_store = SqliteLedgerStore(db=self._db)

        # Load or initialize state.
        if self._ledger_store.exists():
            self.state = self._ledger_store.read()
        else:
            self.state = build_genesis_state(self.config)
            self.state["chain_id"] = self.chain_id
            self._ledger_store.write(self.state)

        # Fail-closed on chain_id mismatch once state is present.
        st_chain_id = str(self.state.get("chain_id") or "").strip()
        if st_chain_id and st_chain_id != self.chain_id:
            raise ExecutorError(
                f"chain_id mismatch: db={st_chain_id!r} executor={self.chain_id!r}. Refuse to start."
            )

        violations = ledger_invariant_violations(self.state)
        if violations:
            raise ExecutorError(f"ledger_invariant_violation: {violations}. Refuse to start.")

        changed, _ = apply_genesis_keys(self.state, self.config)
        if changed:
            self._ledger_store.write(self.state)

        self.state.setdefault("height", 0)
        self.state.setdefault("tip_ts_ms", 0)

        log_event(
            log,
            "executor_started",
            chain_id=self.chain_id,
            db_path=self.db_path,
            height=_safe_int(self.state.get("height"), 0),
        )

    # ----------------------------
    # Public accessors
    # ----------------------------

    @property
    def store(self) -> SqliteLedgerStore:
        return self._ledger_store

    def now_ms(self) -> int:
        return int(self._clock())

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> LedgerView:
        """Read-only view evaluated at the current time (never before the last commit)."""
        with self._lock:
            return LedgerView.from_ledger(self.state, now_ms=self.now_ms())

    def get_receipt(self, tx_id: str) -> Optional[Json]:
        return self._ledger_store.get_receipt(tx_id)

    def list_receipts(self, *, signer: Optional[str] = None, limit: int = 50) -> List[Json]:
        return self._ledger_store.list_receipts(signer=signer, limit=limit)

    def bridge_outbox(self) -> List[Json]:
        with self._lock:
            bridge = self.state.get("bridge")
            outbox = bridge.get("outbox") if isinstance(bridge, dict) else None
            return copy.deepcopy(outbox) if isinstance(outbox, list) else []

    # ----------------------------
    # Tx submission
    # ----------------------------

    def submit_tx(self, env: Any) -> Json:
        """Admit, apply and commit one envelope.

        Admission rejects return {ok: False, error, reason, details} and leave
        no trace. Applied envelopes (successful or not) return their receipt.
        """
        if isinstance(env, TxEnvelope):
            env = env.to_json()
        if not isinstance(env, dict):
            return {"ok": False, "error": "bad_env", "reason": "not_object", "details": None}

        with self._lock:
            verdict = admit_tx(env, self.state)
            if not verdict.ok:
                log_event(
                    log,
                    "tx_rejected",
                    stage="admission",
                    tx_type=str(env.get("tx_type") or ""),
                    signer=str(env.get("signer") or ""),
                    code=verdict.code,
                    reason=verdict.reason,
                )
                return {"ok": False, "error": verdict.code, "reason": verdict.reason, "details": verdict.details}

            tx = TxEnvelope.from_json(env)
            return self._apply_and_commit(tx)

    def submit_system_tx(self, tx_type: str, payload: Json) -> Json:
        """Emit a system envelope signed by the configured system signer."""
        with self._lock:
            params = self.state.get("params") if isinstance(self.state.get("params"), dict) else {}
            signer = str(params.get("system_signer") or self.config.system_signer)
            height = _safe_int(self.state.get("height"), 0)
            env = TxEnvelope(
                tx_type=str(tx_type),
                signer=signer,
                nonce=height + 1,
                payload=dict(payload or {}),
                system=True,
            )
            return self.submit_tx(env)

    def _apply_and_commit(self, tx: TxEnvelope) -> Json:
        prev_ts = _safe_int(self.state.get("tip_ts_ms"), 0)
        ts_ms = max(self.now_ms(), prev_ts)
        height = _safe_int(self.state.get("height"), 0) + 1
        tx_id = compute_tx_id_from_envelope(self.chain_id, tx)

        if self._ledger_store.has_receipt(tx_id):
            return {"ok": False, "error": "duplicate_tx", "reason": "tx_already_applied", "details": {"tx_id": tx_id}}

        working = copy.deepcopy(self.state)
        working["tip_ts_ms"] = ts_ms
        working["height"] = height

        receipt: Json = {
            "tx_id": tx_id,
            "height": height,
            "ts_ms": ts_ms,
            "tx_type": tx.tx_type,
            "signer": tx.signer,
        }
        try:
            meta = apply_tx_atomic(working, tx)
            receipt["ok"] = True
            receipt["result"] = meta if isinstance(meta, dict) else {}
        except ApplyError as e:
            receipt["ok"] = False
            receipt["error"] = e.to_json()

        self._ledger_store.commit(working, receipt)
        self.state = working

        if receipt["ok"]:
            for ev in receipt["result"].get("events", []) or []:
                if isinstance(ev, dict) and ev.get("event"):
                    fields = {k: v for k, v in ev.items() if k != "event"}
                    log_event(log, str(ev["event"]), tx_id=tx_id, height=height, **fields)
            log_event(log, "tx_applied", tx_id=tx_id, height=height, tx_type=tx.tx_type, signer=tx.signer)
        else:
            err = receipt["error"]
            log_event(
                log,
                "tx_rejected",
                stage="apply",
                tx_id=tx_id,
                height=height,
                tx_type=tx.tx_type,
                signer=tx.signer,
                code=err.get("code"),
                reason=err.get("reason"),
            )

        return receipt

    # ----------------------------
    # Orchestration hooks
    # ----------------------------

    @classmethod
    def from_env(cls) -> "LedgerExecutor":
        cfg = load_ledger_config()
        return cls(db_path=cfg.db_path, chain_id=cfg.chain_id, config=cfg)


__all__ = ["ExecutorError", "LedgerExecutor"]
