"""Stateless-ish admission checks run before a tx is applied.

Admission never mutates state. A rejected envelope gets a verdict, not a
receipt, and does not consume the signer's nonce.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict

from rebaseledger.ledger.constants import SYSTEM_SIGNER
from rebaseledger.ledger.state import LedgerView
from rebaseledger.runtime.domain_dispatch import PAYABLE_TX_TYPES, SUPPORTED_TX_TYPES, SYSTEM_TX_TYPES
from rebaseledger.runtime.sigverify import verify_tx_signature
from rebaseledger.runtime.tx_admission_types import TxEnvelope, TxVerdict

Json = Dict[str, Any]

__all__ = ["TxEnvelope", "TxVerdict", "admit_tx"]


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


def _json_size_bytes(obj: Any) -> int:
    try:
        return len(json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))
    except (TypeError, ValueError):
        return -1


def _system_signer(ledger: LedgerView) -> str:
    return str(ledger.get_param("system_signer") or SYSTEM_SIGNER).strip()


def admit_tx(tx: Any, state: Json) -> TxVerdict:
    """Admit a raw envelope against the current (committed) state."""
    ledger = LedgerView.from_ledger(state)

    if not isinstance(tx, (dict, TxEnvelope)):
        return TxVerdict.reject("bad_shape", "envelope_not_object", None)

    raw: Json = tx.to_json() if isinstance(tx, TxEnvelope) else dict(tx)

    max_tx_bytes = _env_int("REBASE_MAX_TX_ENVELOPE_BYTES", 32 * 1024)
    env_size = _json_size_bytes(raw)
    if env_size < 0:
        return TxVerdict.reject("bad_shape", "envelope_not_json", None)
    if env_size > int(max_tx_bytes):
        return TxVerdict.reject(
            "tx_too_large",
            "tx_envelope_exceeds_size_limit",
            {"bytes": int(env_size), "max_bytes": int(max_tx_bytes)},
        )

    try:
        env = TxEnvelope.from_json(raw)
    except (TypeError, ValueError) as e:
        return TxVerdict.reject("bad_shape", "envelope_fields_invalid", {"error": str(e)})

    t = env.tx_type.strip()
    if not t:
        return TxVerdict.reject("bad_shape", "missing_tx_type", None)
    if not env.signer.strip():
        return TxVerdict.reject("bad_shape", "missing_signer", None)
    if t not in SUPPORTED_TX_TYPES:
        return TxVerdict.reject("unknown_tx", "tx_type_not_supported", {"tx_type": t})
    if int(env.value) < 0:
        return TxVerdict.reject("bad_shape", "value_must_be_nonnegative", {"value": int(env.value)})
    if int(env.value) > 0 and t not in PAYABLE_TX_TYPES:
        return TxVerdict.reject("non_payable", "value_not_accepted", {"tx_type": t, "value": int(env.value)})

    system_signer = _system_signer(ledger)
    if t in SYSTEM_TX_TYPES or bool(env.system):
        allowed = {SYSTEM_SIGNER, system_signer}
        if not (bool(env.system) and env.signer in allowed and t in SYSTEM_TX_TYPES):
            return TxVerdict.reject(
                "forbidden",
                "system_only_tx_requires_system_signer",
                {"tx_type": t, "signer": env.signer, "system": bool(env.system)},
            )
        # System txs are emitted by the executor itself; no nonce or signature.
        return TxVerdict.admit()

    expected_nonce = ledger.get_nonce(env.signer) + 1
    if int(env.nonce) != expected_nonce:
        return TxVerdict.reject(
            "bad_nonce",
            "nonce_must_be_next",
            {"signer": env.signer, "nonce": int(env.nonce), "expected": expected_nonce},
        )

    if not verify_tx_signature(state, raw):
        return TxVerdict.reject("bad_sig", "signature_invalid", {"signer": env.signer})

    return TxVerdict.admit()
