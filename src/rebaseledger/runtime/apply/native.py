# src/rebaseledger/runtime/apply/native.py
from __future__ import annotations

"""
Native asset bookkeeping.

The native asset is what the vault accepts on deposit and pays out on
redemption. Balances live in state["native"]["balances"]; the vault's
reserve is simply the vault account's native balance.

An account listed in state["native"]["rejecting"] refuses incoming native
value (it behaves like a recipient that cannot receive payments).

Txs handled here:
- NATIVE_CREDIT (system)
- NATIVE_TRANSFER (payable)
- NATIVE_ACCEPT_SET
"""

from typing import Any, Dict, List, Optional

from rebaseledger.runtime.errors import ApplyError, InvalidPayload, PayoutFailure
from rebaseledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

NATIVE_TX_TYPES = {"NATIVE_CREDIT", "NATIVE_TRANSFER", "NATIVE_ACCEPT_SET"}


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _as_str(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


def _as_bool(v: Any, default: bool = False) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _ensure_native_root(state: Json) -> Json:
    root = state.get("native")
    if not isinstance(root, dict):
        root = {}
        state["native"] = root
    if not isinstance(root.get("balances"), dict):
        root["balances"] = {}
    if not isinstance(root.get("rejecting"), list):
        root["rejecting"] = []
    return root


def native_balance(state: Json, account: str) -> int:
    return int(_ensure_native_root(state)["balances"].get(account, 0) or 0)


def accepts_native(state: Json, account: str) -> bool:
    return account not in _ensure_native_root(state)["rejecting"]


def _move(state: Json, frm: str, to: str, amount: int) -> None:
    balances = _ensure_native_root(state)["balances"]
    balances[frm] = int(balances.get(frm, 0) or 0) - int(amount)
    balances[to] = int(balances.get(to, 0) or 0) + int(amount)


def collect_value(state: Json, env: TxEnvelope, *, to: str) -> int:
    """Move the native value attached to `env` from the signer to `to`."""
    value = int(env.value or 0)
    if value < 0:
        raise InvalidPayload("value_negative", {"value": value})
    if value == 0:
        return 0

    have = native_balance(state, env.signer)
    if value > have:
        raise ApplyError(
            "insufficient_funds",
            "native_value_exceeds_balance",
            {"account": env.signer, "available": have, "requested": value},
        )
    if not accepts_native(state, to):
        raise ApplyError("forbidden", "recipient_rejects_native", {"to": to})

    _move(state, env.signer, to, value)
    return value


def pay_out(state: Json, *, frm: str, to: str, amount: int) -> Json:
    """Send native value; any failure surfaces as PayoutFailure."""
    amount = int(amount)
    have = native_balance(state, frm)
    if amount > have:
        raise PayoutFailure("reserve_insufficient", {"from": frm, "available": have, "requested": amount})
    if not accepts_native(state, to):
        raise PayoutFailure("recipient_rejected_payment", {"to": to, "amount": amount})

    _move(state, frm, to, amount)
    return {"event": "native_paid", "from": frm, "to": to, "amount": amount}


# ---------------------------------------------------------------------------
# Appliers
# ---------------------------------------------------------------------------

def _apply_native_credit(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    account = _as_str(payload.get("account"))
    if not account:
        raise InvalidPayload("missing_account", {"tx_type": env.tx_type})
    amount = payload.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidPayload("amount_must_be_positive_int", {"tx_type": env.tx_type, "amount": amount})

    balances = _ensure_native_root(state)["balances"]
    balances[account] = int(balances.get(account, 0) or 0) + int(amount)
    return {
        "applied": "NATIVE_CREDIT",
        "account": account,
        "amount": int(amount),
        "events": [{"event": "native_credited", "account": account, "amount": int(amount)}],
    }


def _apply_native_transfer(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    to = _as_str(payload.get("to"))
    if not to:
        raise InvalidPayload("missing_to", {"tx_type": env.tx_type})
    if int(env.value or 0) <= 0:
        raise InvalidPayload("value_required", {"tx_type": env.tx_type})

    value = collect_value(state, env, to=to)
    events: List[Json] = [{"event": "native_transfer", "from": env.signer, "to": to, "amount": value}]

    vault = _as_str(_as_dict(state.get("params")).get("vault_account"))
    if vault and to == vault:
        events.append({"event": "vault_funded", "from": env.signer, "amount": value})

    return {"applied": "NATIVE_TRANSFER", "to": to, "amount": value, "events": events}


def _apply_native_accept_set(state: Json, env: TxEnvelope) -> Json:
    accept = _as_bool(_as_dict(env.payload).get("accept"), True)
    root = _ensure_native_root(state)
    rejecting = [a for a in root["rejecting"] if a != env.signer]
    if not accept:
        rejecting.append(env.signer)
    root["rejecting"] = sorted(rejecting)
    return {"applied": "NATIVE_ACCEPT_SET", "account": env.signer, "accept": accept, "events": []}


def apply_native(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply native-asset txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in NATIVE_TX_TYPES:
        return None

    if t == "NATIVE_CREDIT":
        return _apply_native_credit(state, env)
    if t == "NATIVE_TRANSFER":
        return _apply_native_transfer(state, env)
    if t == "NATIVE_ACCEPT_SET":
        return _apply_native_accept_set(state, env)

    return None


__all__ = [
    "NATIVE_TX_TYPES",
    "accepts_native",
    "apply_native",
    "collect_value",
    "native_balance",
    "pay_out",
]
