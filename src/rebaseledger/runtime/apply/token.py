# src/rebaseledger/runtime/apply/token.py
from __future__ import annotations

"""
Rebase token ledger semantics.

Every account carries:
  principal       realized (minted minus burned) balance, not time-adjusted
  rate            per-second fixed-point rate frozen for the account
  last_update_s   commit time of the last interest realization

The externally visible balance is the accrued balance:
  principal * (PRECISION + rate * elapsed) // PRECISION

Pending interest is realized lazily: mint, burn and both sides of a
transfer first mint the account's pending interest into its principal.

Txs handled here:
- TOKEN_MINT / TOKEN_BURN (mint/burn role)
- TOKEN_TRANSFER / TOKEN_TRANSFER_FROM / TOKEN_APPROVE
- RATE_SET (owner)

The ledger_* functions below are the capability surface used by the vault
and the bridge pool; each takes the calling account explicitly.
"""

from typing import Any, Dict, List, Optional

from rebaseledger.ledger.accrual import account_accrued_balance
from rebaseledger.ledger.amounts import (
    AmountParseError,
    AmountRequest,
    Exact,
    parse_amount,
    resolve_amount,
)
from rebaseledger.ledger.constants import INITIAL_GLOBAL_RATE, MAX_ALLOWANCE
from rebaseledger.runtime.apply.roles import require_owner, require_role
from rebaseledger.runtime.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidPayload,
    RateIncreaseRejected,
)
from rebaseledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

TOKEN_TX_TYPES = {
    "TOKEN_MINT",
    "TOKEN_BURN",
    "TOKEN_TRANSFER",
    "TOKEN_TRANSFER_FROM",
    "TOKEN_APPROVE",
    "RATE_SET",
}


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int)) and not isinstance(v, bool) else ""


def _ensure_token_root(state: Json) -> Json:
    tok = state.get("token")
    if not isinstance(tok, dict):
        tok = {}
        state["token"] = tok
    tok.setdefault("global_rate", INITIAL_GLOBAL_RATE)
    tok.setdefault("rate_floor", int(tok["global_rate"]))
    tok.setdefault("total_supply", 0)
    tok.setdefault("allowances", {})
    return tok


def _account(state: Json, account_id: str) -> Json:
    """Return the account record, creating it at zero state on first touch."""
    accounts = state.get("accounts")
    if not isinstance(accounts, dict):
        accounts = {}
        state["accounts"] = accounts
    acct = accounts.get(account_id)
    if not isinstance(acct, dict):
        acct = {}
        accounts[account_id] = acct
    acct.setdefault("nonce", 0)
    acct.setdefault("principal", 0)
    acct.setdefault("rate", 0)
    acct.setdefault("last_update_s", 0)
    return acct


def now_s(state: Json) -> int:
    """Commit time in seconds (set by the executor before apply)."""
    return int(state.get("tip_ts_ms", 0) or 0) // 1000


# ---------------------------------------------------------------------------
# Queries (no realization side effects)
# ---------------------------------------------------------------------------

def balance_of(state: Json, account_id: str) -> int:
    accounts = _as_dict(state.get("accounts"))
    return account_accrued_balance(_as_dict(accounts.get(account_id)), now_s(state))


def principal_balance_of(state: Json, account_id: str) -> int:
    accounts = _as_dict(state.get("accounts"))
    return int(_as_dict(accounts.get(account_id)).get("principal", 0) or 0)


def get_user_rate(state: Json, account_id: str) -> int:
    accounts = _as_dict(state.get("accounts"))
    return int(_as_dict(accounts.get(account_id)).get("rate", 0) or 0)


def get_global_rate(state: Json) -> int:
    return int(_ensure_token_root(state)["global_rate"])


# ---------------------------------------------------------------------------
# Capability surface
# ---------------------------------------------------------------------------

def realize_interest(state: Json, account_id: str) -> Optional[Json]:
    """Mint the account's pending interest into its principal.

    The timestamp is reset even when nothing is pending. Returns an event
    when interest was minted.
    """
    tok = _ensure_token_root(state)
    acct = _account(state, account_id)
    t = now_s(state)

    principal = int(acct["principal"])
    increase = account_accrued_balance(acct, t) - principal
    acct["last_update_s"] = t
    if increase <= 0:
        return None

    acct["principal"] = principal + increase
    tok["total_supply"] = int(tok["total_supply"]) + increase
    return {"event": "interest_realized", "account": account_id, "amount": increase, "at_s": t}


def ledger_mint(state: Json, *, caller: str, to: str, amount: int, rate: int) -> List[Json]:
    """Mint `amount` principal to `to` and install `rate` unconditionally."""
    require_role(state, caller, op="mint")
    if int(amount) < 0:
        raise InvalidPayload("amount_negative", {"amount": int(amount)})
    if int(rate) < 0:
        raise InvalidPayload("rate_negative", {"rate": int(rate)})

    events: List[Json] = []
    ev = realize_interest(state, to)
    if ev is not None:
        events.append(ev)

    tok = _ensure_token_root(state)
    acct = _account(state, to)
    acct["rate"] = int(rate)
    acct["principal"] = int(acct["principal"]) + int(amount)
    tok["total_supply"] = int(tok["total_supply"]) + int(amount)

    events.append({"event": "token_minted", "by": caller, "to": to, "amount": int(amount), "rate": int(rate)})
    return events


def ledger_burn(state: Json, *, caller: str, frm: str, amount: int) -> List[Json]:
    """Burn `amount` of `frm`'s just-realized principal."""
    require_role(state, caller, op="burn")
    if int(amount) < 0:
        raise InvalidPayload("amount_negative", {"amount": int(amount)})

    events: List[Json] = []
    ev = realize_interest(state, frm)
    if ev is not None:
        events.append(ev)

    tok = _ensure_token_root(state)
    acct = _account(state, frm)
    principal = int(acct["principal"])
    if int(amount) > principal:
        raise InsufficientBalance(frm, principal, int(amount))

    acct["principal"] = principal - int(amount)
    tok["total_supply"] = int(tok["total_supply"]) - int(amount)

    events.append({"event": "token_burned", "by": caller, "from": frm, "amount": int(amount)})
    return events


def _spend_allowance(state: Json, *, owner: str, spender: str, amount: int) -> None:
    tok = _ensure_token_root(state)
    allowances = tok["allowances"]
    per_owner = _as_dict(allowances.get(owner))
    current = int(per_owner.get(spender, 0) or 0)
    if current == MAX_ALLOWANCE:
        return
    if amount > current:
        raise InsufficientAllowance(owner, spender, current, amount)
    per_owner[spender] = current - amount
    allowances[owner] = per_owner


def ledger_transfer(
    state: Json,
    *,
    frm: str,
    to: str,
    amount: AmountRequest,
    spender: Optional[str] = None,
) -> List[Json]:
    """Move principal from `frm` to `to` after realizing both sides.

    "All" resolves against `frm`'s just-realized balance. A recipient with a
    zero accrued balance inherits `frm`'s rate; a recipient that already holds
    tokens keeps its own rate.
    """
    events: List[Json] = []
    for account_id in (frm, to):
        ev = realize_interest(state, account_id)
        if ev is not None:
            events.append(ev)

    value = resolve_amount(amount, balance_of(state, frm))

    src = _account(state, frm)
    dst = _account(state, to)
    if balance_of(state, to) == 0:
        dst["rate"] = int(src["rate"])

    if spender is not None:
        _spend_allowance(state, owner=frm, spender=spender, amount=value)

    src_principal = int(src["principal"])
    if src_principal < value:
        raise InsufficientBalance(frm, src_principal, value)

    src["principal"] = src_principal - value
    dst["principal"] = int(dst["principal"]) + value

    ev_out: Json = {"event": "token_transfer", "from": frm, "to": to, "amount": value}
    if spender is not None:
        ev_out["spender"] = spender
    events.append(ev_out)
    return events


def ledger_approve(state: Json, *, owner: str, spender: str, amount: AmountRequest) -> Json:
    tok = _ensure_token_root(state)
    value = MAX_ALLOWANCE if not isinstance(amount, Exact) else int(amount.amount)
    per_owner = _as_dict(tok["allowances"].get(owner))
    per_owner[spender] = value
    tok["allowances"][owner] = per_owner
    return {"event": "token_approval", "owner": owner, "spender": spender, "amount": value}


def set_global_rate(state: Json, *, caller: str, new_rate: int) -> Json:
    require_owner(state, caller, op="set_global_rate")
    tok = _ensure_token_root(state)
    old_rate = int(tok["global_rate"])
    if int(new_rate) > old_rate:
        raise RateIncreaseRejected(old_rate, int(new_rate))
    if int(new_rate) < 0:
        raise InvalidPayload("rate_negative", {"rate": int(new_rate)})

    tok["global_rate"] = int(new_rate)
    tok["rate_floor"] = min(int(tok.get("rate_floor", old_rate)), int(new_rate))
    return {"event": "global_rate_set", "old_rate": old_rate, "new_rate": int(new_rate)}


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def _require_account(payload: Json, key: str, tx_type: str) -> str:
    v = _as_str(payload.get(key))
    if not v:
        raise InvalidPayload(f"missing_{key}", {"tx_type": tx_type})
    return v


def _payload_amount(payload: Json, tx_type: str, *, allow_all: bool = True) -> AmountRequest:
    try:
        return parse_amount(payload.get("amount"), allow_all=allow_all)
    except AmountParseError as e:
        raise InvalidPayload(str(e), {"tx_type": tx_type, "amount": payload.get("amount")})


def _payload_int(payload: Json, key: str, tx_type: str) -> int:
    v = payload.get(key)
    if isinstance(v, bool):
        raise InvalidPayload(f"{key}_not_integer", {"tx_type": tx_type})
    try:
        return int(v)
    except (TypeError, ValueError):
        raise InvalidPayload(f"{key}_not_integer", {"tx_type": tx_type, key: v})


# ---------------------------------------------------------------------------
# Appliers
# ---------------------------------------------------------------------------

def _apply_token_mint(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, op="mint")
    payload = _as_dict(env.payload)
    to = _require_account(payload, "to", env.tx_type)
    amount = resolve_amount(_payload_amount(payload, env.tx_type, allow_all=False), 0)
    rate = _payload_int(payload, "rate", env.tx_type) if "rate" in payload else get_global_rate(state)

    events = ledger_mint(state, caller=env.signer, to=to, amount=amount, rate=rate)
    return {"applied": "TOKEN_MINT", "to": to, "amount": amount, "rate": rate, "events": events}


def _apply_token_burn(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, op="burn")
    payload = _as_dict(env.payload)
    frm = _require_account(payload, "from", env.tx_type)
    # Burn only takes exact amounts; "all" must be resolved by the caller first.
    amount = resolve_amount(_payload_amount(payload, env.tx_type, allow_all=False), 0)

    events = ledger_burn(state, caller=env.signer, frm=frm, amount=amount)
    return {"applied": "TOKEN_BURN", "from": frm, "amount": amount, "events": events}


def _apply_token_transfer(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    to = _require_account(payload, "to", env.tx_type)
    amount = _payload_amount(payload, env.tx_type)

    events = ledger_transfer(state, frm=env.signer, to=to, amount=amount)
    return {"applied": "TOKEN_TRANSFER", "from": env.signer, "to": to, "amount": events[-1]["amount"], "events": events}


def _apply_token_transfer_from(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    frm = _require_account(payload, "from", env.tx_type)
    to = _require_account(payload, "to", env.tx_type)
    amount = _payload_amount(payload, env.tx_type)

    events = ledger_transfer(state, frm=frm, to=to, amount=amount, spender=env.signer)
    return {
        "applied": "TOKEN_TRANSFER_FROM",
        "spender": env.signer,
        "from": frm,
        "to": to,
        "amount": events[-1]["amount"],
        "events": events,
    }


def _apply_token_approve(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    spender = _require_account(payload, "spender", env.tx_type)
    amount = _payload_amount(payload, env.tx_type)

    ev = ledger_approve(state, owner=env.signer, spender=spender, amount=amount)
    return {"applied": "TOKEN_APPROVE", "spender": spender, "amount": ev["amount"], "events": [ev]}


def _apply_rate_set(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env.signer, op="set_global_rate")
    payload = _as_dict(env.payload)
    new_rate = _payload_int(payload, "rate", env.tx_type)

    ev = set_global_rate(state, caller=env.signer, new_rate=new_rate)
    return {"applied": "RATE_SET", "old_rate": ev["old_rate"], "rate": ev["new_rate"], "events": [ev]}


def apply_token(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply token ledger txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in TOKEN_TX_TYPES:
        return None

    _ensure_token_root(state)

    if t == "TOKEN_MINT":
        return _apply_token_mint(state, env)
    if t == "TOKEN_BURN":
        return _apply_token_burn(state, env)
    if t == "TOKEN_TRANSFER":
        return _apply_token_transfer(state, env)
    if t == "TOKEN_TRANSFER_FROM":
        return _apply_token_transfer_from(state, env)
    if t == "TOKEN_APPROVE":
        return _apply_token_approve(state, env)
    if t == "RATE_SET":
        return _apply_rate_set(state, env)

    return None


__all__ = [
    "TOKEN_TX_TYPES",
    "apply_token",
    "balance_of",
    "get_global_rate",
    "get_user_rate",
    "ledger_approve",
    "ledger_burn",
    "ledger_mint",
    "ledger_transfer",
    "now_s",
    "principal_balance_of",
    "realize_interest",
    "set_global_rate",
]
