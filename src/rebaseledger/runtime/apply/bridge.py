# src/rebaseledger/runtime/apply/bridge.py
from __future__ import annotations

"""
Bridge pool: lock on the source chain, release on the destination chain.

The transport that carries messages between chains is external. This module
only produces outbound messages (BRIDGE_LOCK) and consumes inbound ones
(BRIDGE_RELEASE). The account's rate travels inside the message so the
destination mints at the preserved rate, never at its own global rate.

Message shape (canonical JSON, sorted keys):
  {message_id, seq, source_chain, dest_chain, sender, receiver, amount, rate}

Txs handled here:
- BRIDGE_LOCK (user)
- BRIDGE_RELEASE (system, idempotent per message_id)
"""

import hashlib
import json
from typing import Any, Dict, List, Optional

from rebaseledger.ledger.amounts import AmountParseError, parse_amount, resolve_amount
from rebaseledger.ledger.constants import DEFAULT_BRIDGE_POOL_ACCOUNT
from rebaseledger.runtime.apply.token import get_user_rate, ledger_burn, ledger_mint, realize_interest
from rebaseledger.runtime.errors import ApplyError, InvalidPayload
from rebaseledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

BRIDGE_TX_TYPES = {"BRIDGE_LOCK", "BRIDGE_RELEASE"}

_MESSAGE_FIELDS = ("seq", "source_chain", "dest_chain", "sender", "receiver", "amount", "rate")


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _as_str(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


def _canon_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def pool_account(state: Json) -> str:
    v = _as_str(_as_dict(state.get("params")).get("bridge_pool_account"))
    return v or DEFAULT_BRIDGE_POOL_ACCOUNT


def _ensure_bridge_root(state: Json) -> Json:
    root = state.get("bridge")
    if not isinstance(root, dict):
        root = {}
        state["bridge"] = root
    if not isinstance(root.get("outbox"), list):
        root["outbox"] = []
    if not isinstance(root.get("released"), dict):
        root["released"] = {}
    root.setdefault("next_seq", 1)
    return root


def compute_message_id(msg: Json) -> str:
    body = {k: msg.get(k) for k in _MESSAGE_FIELDS}
    return hashlib.sha256(_canon_json(body).encode("utf-8")).hexdigest()


def encode_pool_data(msg: Json) -> str:
    return _canon_json({k: msg[k] for k in ("message_id",) + _MESSAGE_FIELDS})


def decode_pool_data(raw: Any) -> Json:
    """Parse and validate an inbound message (JSON string or dict)."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise InvalidPayload("message_not_json", {})
    msg = _as_dict(raw)
    if not msg:
        raise InvalidPayload("missing_message", {})

    out: Json = {}
    for key in ("source_chain", "dest_chain", "sender", "receiver"):
        v = _as_str(msg.get(key))
        if not v:
            raise InvalidPayload(f"message_missing_{key}", {})
        out[key] = v
    for key in ("seq", "amount", "rate"):
        v = msg.get(key)
        if isinstance(v, bool) or not isinstance(v, int) or v < 0:
            raise InvalidPayload(f"message_bad_{key}", {key: v})
        out[key] = int(v)

    expected = compute_message_id(out)
    given = _as_str(msg.get("message_id"))
    if given and given != expected:
        raise InvalidPayload("message_id_mismatch", {"given": given, "expected": expected})
    out["message_id"] = expected
    return out


def _apply_bridge_lock(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    dest_chain = _as_str(payload.get("dest_chain"))
    if not dest_chain:
        raise InvalidPayload("missing_dest_chain", {"tx_type": env.tx_type})
    receiver = _as_str(payload.get("receiver")) or env.signer
    try:
        amount = resolve_amount(parse_amount(payload.get("amount"), allow_all=False), 0)
    except AmountParseError as e:
        raise InvalidPayload(str(e), {"tx_type": env.tx_type, "amount": payload.get("amount")})

    pool = pool_account(state)
    root = _ensure_bridge_root(state)

    events: List[Json] = []
    ev = realize_interest(state, env.signer)
    if ev is not None:
        events.append(ev)
    rate = get_user_rate(state, env.signer)
    events.extend(ledger_burn(state, caller=pool, frm=env.signer, amount=amount))

    seq = int(root["next_seq"])
    msg: Json = {
        "seq": seq,
        "source_chain": str(state.get("chain_id") or ""),
        "dest_chain": dest_chain,
        "sender": env.signer,
        "receiver": receiver,
        "amount": amount,
        "rate": rate,
    }
    msg["message_id"] = compute_message_id(msg)
    root["outbox"].append(msg)
    root["next_seq"] = seq + 1

    events.append({"event": "bridge_locked", "message_id": msg["message_id"], "amount": amount, "rate": rate})
    return {"applied": "BRIDGE_LOCK", "message": msg, "pool_data": encode_pool_data(msg), "events": events}


def _apply_bridge_release(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    msg = decode_pool_data(payload.get("message"))

    chain_id = str(state.get("chain_id") or "")
    if chain_id and msg["dest_chain"] != chain_id:
        raise ApplyError("invalid_message", "wrong_dest_chain", {"dest_chain": msg["dest_chain"], "chain_id": chain_id})

    root = _ensure_bridge_root(state)
    if msg["message_id"] in root["released"]:
        raise ApplyError("conflict", "message_already_released", {"message_id": msg["message_id"]})

    pool = pool_account(state)
    # Mint at the rate carried in the message, not at this chain's global rate.
    events = ledger_mint(state, caller=pool, to=msg["receiver"], amount=msg["amount"], rate=msg["rate"])
    root["released"][msg["message_id"]] = {
        "receiver": msg["receiver"],
        "amount": msg["amount"],
        "rate": msg["rate"],
        "source_chain": msg["source_chain"],
    }

    events.append({"event": "bridge_released", "message_id": msg["message_id"], "amount": msg["amount"], "rate": msg["rate"]})
    return {"applied": "BRIDGE_RELEASE", "message_id": msg["message_id"], "events": events}


def apply_bridge(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply bridge pool txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in BRIDGE_TX_TYPES:
        return None

    if t == "BRIDGE_LOCK":
        return _apply_bridge_lock(state, env)
    if t == "BRIDGE_RELEASE":
        return _apply_bridge_release(state, env)

    return None


__all__ = [
    "BRIDGE_TX_TYPES",
    "apply_bridge",
    "compute_message_id",
    "decode_pool_data",
    "encode_pool_data",
    "pool_account",
]
