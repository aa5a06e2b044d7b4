# src/rebaseledger/runtime/apply/vault.py
from __future__ import annotations

"""
Deposit/redeem vault.

The vault is the only conversion boundary between the native asset and the
rebase token. It acts on the ledger through the vault account, which must
hold the mint/burn role:

  deposit  value in  -> ledger.mint(caller, value, current global rate)
  redeem   amount    -> ledger.burn(caller, amount) -> native payout 1:1

Burn and payout run inside one atomic apply: if the payout fails the whole
redemption is rolled back, burn included.

Txs handled here:
- VAULT_DEPOSIT (payable)
- VAULT_REDEEM
- VAULT_FUND (payable, reserve top-up, no mint)
"""

from typing import Any, Dict, List, Optional

from rebaseledger.ledger.amounts import AmountParseError, parse_amount, resolve_amount
from rebaseledger.ledger.constants import DEFAULT_TOKEN_ID, DEFAULT_VAULT_ACCOUNT
from rebaseledger.runtime.apply.native import collect_value, native_balance, pay_out
from rebaseledger.runtime.apply.token import balance_of, get_global_rate, ledger_burn, ledger_mint
from rebaseledger.runtime.errors import InvalidPayload
from rebaseledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

VAULT_TX_TYPES = {"VAULT_DEPOSIT", "VAULT_REDEEM", "VAULT_FUND"}


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def vault_account(state: Json) -> str:
    v = _as_dict(state.get("params")).get("vault_account")
    return v.strip() if isinstance(v, str) and v.strip() else DEFAULT_VAULT_ACCOUNT


def vault_reserve(state: Json) -> int:
    return native_balance(state, vault_account(state))


def rebase_token_address(state: Json) -> str:
    v = _as_dict(state.get("params")).get("token_id")
    return v.strip() if isinstance(v, str) and v.strip() else DEFAULT_TOKEN_ID


def _apply_vault_deposit(state: Json, env: TxEnvelope) -> Json:
    vault = vault_account(state)
    value = collect_value(state, env, to=vault)

    rate = get_global_rate(state)
    events: List[Json] = ledger_mint(state, caller=vault, to=env.signer, amount=value, rate=rate)
    events.append({"event": "vault_deposit", "account": env.signer, "amount": value})
    return {"applied": "VAULT_DEPOSIT", "account": env.signer, "amount": value, "rate": rate, "events": events}


def _apply_vault_redeem(state: Json, env: TxEnvelope) -> Json:
    vault = vault_account(state)
    payload = _as_dict(env.payload)
    try:
        req = parse_amount(payload.get("amount"))
    except AmountParseError as e:
        raise InvalidPayload(str(e), {"tx_type": env.tx_type, "amount": payload.get("amount")})

    # "all" resolves against the live, time-adjusted balance at this instant.
    amount = resolve_amount(req, balance_of(state, env.signer))

    events: List[Json] = ledger_burn(state, caller=vault, frm=env.signer, amount=amount)
    events.append(pay_out(state, frm=vault, to=env.signer, amount=amount))
    events.append({"event": "vault_redeem", "account": env.signer, "amount": amount})
    return {"applied": "VAULT_REDEEM", "account": env.signer, "amount": amount, "events": events}


def _apply_vault_fund(state: Json, env: TxEnvelope) -> Json:
    if int(env.value or 0) <= 0:
        raise InvalidPayload("value_required", {"tx_type": env.tx_type})
    value = collect_value(state, env, to=vault_account(state))
    return {
        "applied": "VAULT_FUND",
        "amount": value,
        "events": [{"event": "vault_funded", "from": env.signer, "amount": value}],
    }


def apply_vault(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply vault txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in VAULT_TX_TYPES:
        return None

    if t == "VAULT_DEPOSIT":
        return _apply_vault_deposit(state, env)
    if t == "VAULT_REDEEM":
        return _apply_vault_redeem(state, env)
    if t == "VAULT_FUND":
        return _apply_vault_fund(state, env)

    return None


__all__ = [
    "VAULT_TX_TYPES",
    "apply_vault",
    "rebase_token_address",
    "vault_account",
    "vault_reserve",
]
