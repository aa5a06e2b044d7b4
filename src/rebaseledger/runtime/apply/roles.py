from __future__ import annotations

"""
Capability checks and role management.

The ledger has exactly one privileged role (mint/burn) and one owner:
- role holders may call mint/burn (the vault and the bridge pool at genesis)
- the owner may lower the global rate and grant/revoke the role

Txs handled here:
- ROLE_GRANT
- ROLE_REVOKE
"""

from typing import Any, Dict, List, Optional

from rebaseledger.ledger.constants import MINT_AND_BURN_ROLE
from rebaseledger.runtime.errors import AuthorizationError, InvalidPayload
from rebaseledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

ROLES_TX_TYPES = {"ROLE_GRANT", "ROLE_REVOKE"}


def _as_dict(x: Any) -> Json:
    return x if isinstance(x, dict) else {}


def _as_str(x: Any) -> str:
    return x.strip() if isinstance(x, str) else ""


def _ensure_roles(state: Json) -> Json:
    roles = state.get("roles")
    if not isinstance(roles, dict):
        roles = {}
        state["roles"] = roles
    if not isinstance(roles.get(MINT_AND_BURN_ROLE), list):
        roles[MINT_AND_BURN_ROLE] = []
    return roles


def role_holders(state: Json, role: str = MINT_AND_BURN_ROLE) -> List[str]:
    roles = _ensure_roles(state)
    holders = roles.get(role)
    return list(holders) if isinstance(holders, list) else []


def has_role(state: Json, account: str, role: str = MINT_AND_BURN_ROLE) -> bool:
    return account in role_holders(state, role)


def owner_of(state: Json) -> str:
    return _as_str(_as_dict(state.get("params")).get("owner"))


# ---------------------------------------------------------------------------
# Guards (called first thing in every privileged operation)
# ---------------------------------------------------------------------------

def require_role(state: Json, caller: str, *, op: str) -> None:
    if not has_role(state, caller):
        raise AuthorizationError(
            "mint_and_burn_role_required",
            {"caller": caller, "op": op, "role": MINT_AND_BURN_ROLE},
        )


def require_owner(state: Json, caller: str, *, op: str) -> None:
    owner = owner_of(state)
    if not owner or caller != owner:
        raise AuthorizationError("owner_required", {"caller": caller, "op": op})


# ---------------------------------------------------------------------------
# Appliers
# ---------------------------------------------------------------------------

def _target_account(env: TxEnvelope) -> str:
    account = _as_str(_as_dict(env.payload).get("account"))
    if not account:
        raise InvalidPayload("missing_account", {"tx_type": env.tx_type})
    return account


def _apply_role_grant(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env.signer, op="grant_role")
    account = _target_account(env)

    roles = _ensure_roles(state)
    holders = role_holders(state)
    if account in holders:
        return {"applied": "ROLE_GRANT", "account": account, "deduped": True, "events": []}

    roles[MINT_AND_BURN_ROLE] = sorted(holders + [account])
    return {
        "applied": "ROLE_GRANT",
        "account": account,
        "events": [{"event": "role_granted", "account": account, "role": MINT_AND_BURN_ROLE}],
    }


def _apply_role_revoke(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env.signer, op="revoke_role")
    account = _target_account(env)

    roles = _ensure_roles(state)
    holders = role_holders(state)
    if account not in holders:
        return {"applied": "ROLE_REVOKE", "account": account, "deduped": True, "events": []}

    roles[MINT_AND_BURN_ROLE] = sorted(h for h in holders if h != account)
    return {
        "applied": "ROLE_REVOKE",
        "account": account,
        "events": [{"event": "role_revoked", "account": account, "role": MINT_AND_BURN_ROLE}],
    }


def apply_roles(state: Json, env: TxEnvelope) -> Optional[Json]:
    """Apply role txs. Returns meta dict if handled; otherwise None."""
    t = str(env.tx_type or "").strip()
    if t not in ROLES_TX_TYPES:
        return None

    if t == "ROLE_GRANT":
        return _apply_role_grant(state, env)
    if t == "ROLE_REVOKE":
        return _apply_role_revoke(state, env)

    return None


__all__ = [
    "ROLES_TX_TYPES",
    "apply_roles",
    "has_role",
    "owner_of",
    "require_owner",
    "require_role",
    "role_holders",
]
