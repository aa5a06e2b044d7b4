# src/rebaseledger/runtime/tx_id.py
from __future__ import annotations

import hashlib
import json
from typing import Any, Dict

from rebaseledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _json_canonical(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compute_tx_id(
    *,
    chain_id: str,
    tx_type: str,
    signer: str,
    nonce: int,
    payload: Json,
    value: int = 0,
    system: bool = False,
) -> str:
    """
    Canonical tx_id function (single source of truth).

    Contract:
      - Includes chain_id (so identical tx across chains cannot collide)
      - Excludes sig (signature encoding MUST NOT affect tx_id)
      - Excludes commit timestamps (assigned by the executor)
    """
    obj: Json = {
        "chain_id": str(chain_id),
        "tx_type": str(tx_type),
        "signer": str(signer),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
        "value": int(value or 0),
        "system": bool(system),
    }
    return _sha256_hex(_json_canonical(obj))


def compute_tx_id_from_envelope(chain_id: str, env: TxEnvelope) -> str:
    return compute_tx_id(
        chain_id=str(chain_id),
        tx_type=env.tx_type,
        signer=env.signer,
        nonce=int(env.nonce),
        payload=env.payload,
        value=int(env.value),
        system=bool(env.system),
    )
