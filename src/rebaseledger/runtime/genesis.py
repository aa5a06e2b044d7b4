# src/rebaseledger/runtime/genesis.py
from __future__ import annotations

from typing import Any, Dict, Tuple

from rebaseledger.ledger.constants import MINT_AND_BURN_ROLE
from rebaseledger.runtime.chain_config import LedgerConfig

Json = Dict[str, Any]


def _empty_account() -> Json:
    return {"nonce": 0, "keys": {}, "principal": 0, "rate": 0, "last_update_s": 0}


def build_genesis_state(cfg: LedgerConfig) -> Json:
    """Initial ledger state for a fresh database.

    The vault and the bridge pool receive the mint/burn role here; nothing
    else holds it until the owner grants it.
    """
    accounts: Json = {}
    for acct_id in (cfg.owner, cfg.vault_account, cfg.bridge_pool_account):
        accounts.setdefault(acct_id, _empty_account())

    for acct_id, pubkeys in sorted(cfg.genesis_keys.items()):
        acct = accounts.setdefault(acct_id, _empty_account())
        for pk in pubkeys:
            acct["keys"][pk] = {"active": True}

    balances = {acct_id: int(amount) for acct_id, amount in sorted(cfg.genesis_native.items()) if int(amount) > 0}

    rate = int(cfg.initial_global_rate)
    return {
        "chain_id": cfg.chain_id,
        "height": 0,
        "tip_ts_ms": 0,
        "params": {
            "owner": cfg.owner,
            "token_id": cfg.token_id,
            "vault_account": cfg.vault_account,
            "bridge_pool_account": cfg.bridge_pool_account,
            "system_signer": cfg.system_signer,
            "require_signatures": bool(cfg.require_signatures),
        },
        "accounts": accounts,
        "roles": {MINT_AND_BURN_ROLE: sorted({cfg.vault_account, cfg.bridge_pool_account})},
        "token": {"global_rate": rate, "rate_floor": rate, "total_supply": 0, "allowances": {}},
        "native": {"balances": balances, "rejecting": []},
        "bridge": {"outbox": [], "released": {}, "next_seq": 1},
    }


def apply_genesis_keys(state: Json, cfg: LedgerConfig) -> Tuple[bool, Json]:
    """Add configured keys to an existing genesis-height state.

    Returns (changed, state). Only applies at height 0 and is idempotent.
    """
    if int(state.get("height", 0) or 0) != 0:
        return False, state

    changed = False
    accounts = state.setdefault("accounts", {})
    for acct_id, pubkeys in sorted(cfg.genesis_keys.items()):
        acct = accounts.get(acct_id)
        if not isinstance(acct, dict):
            acct = _empty_account()
            accounts[acct_id] = acct
            changed = True
        keys = acct.get("keys")
        if not isinstance(keys, dict):
            keys = {}
            acct["keys"] = keys
            changed = True
        for pk in pubkeys:
            rec = keys.get(pk)
            if not isinstance(rec, dict) or not rec.get("active"):
                keys[pk] = {"active": True}
                changed = True
    return changed, state


__all__ = ["apply_genesis_keys", "build_genesis_state"]
