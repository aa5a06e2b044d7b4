# src/rebaseledger/runtime/domain_dispatch.py

from __future__ import annotations

from typing import Any, Callable, Dict, FrozenSet, Optional

from rebaseledger.ledger.constants import SYSTEM_SIGNER
from rebaseledger.runtime.errors import ApplyError
from rebaseledger.runtime.state_invariants import ensure_state
from rebaseledger.runtime.tx_admission_types import TxEnvelope

# Domain appliers (each returns Optional[Json]; returning None means "not claimed")
from rebaseledger.runtime.apply.bridge import BRIDGE_TX_TYPES, apply_bridge
from rebaseledger.runtime.apply.native import NATIVE_TX_TYPES, apply_native
from rebaseledger.runtime.apply.roles import ROLES_TX_TYPES, apply_roles
from rebaseledger.runtime.apply.token import TOKEN_TX_TYPES, apply_token
from rebaseledger.runtime.apply.vault import VAULT_TX_TYPES, apply_vault

Json = Dict[str, Any]
ApplyFn = Callable[[Json, Any], Optional[Json]]

SUPPORTED_TX_TYPES: FrozenSet[str] = frozenset(
    TOKEN_TX_TYPES | ROLES_TX_TYPES | NATIVE_TX_TYPES | VAULT_TX_TYPES | BRIDGE_TX_TYPES
)

# Only the system signer may emit these (genesis funding, inbound bridge delivery).
SYSTEM_TX_TYPES: FrozenSet[str] = frozenset({"NATIVE_CREDIT", "BRIDGE_RELEASE"})

# Only these accept native value attached to the call.
PAYABLE_TX_TYPES: FrozenSet[str] = frozenset({"VAULT_DEPOSIT", "VAULT_FUND", "NATIVE_TRANSFER"})


def _get(env: Any, key: str, default: Any = None) -> Any:
    """Read a field from either a TxEnvelope-like object or a dict."""

    if isinstance(env, dict):
        return env.get(key, default)
    return getattr(env, key, default)


def _tx_type(env: Any) -> str:
    return str(_get(env, "tx_type", "") or "").strip()


def system_signer_of(state: Json) -> str:
    return str(state.get("params", {}).get("system_signer") or SYSTEM_SIGNER).strip()


def _enforce_apply_time_rules(state: Json, env: Any) -> None:
    """Apply-time enforcement of origin and payability.

    Admission already enforces these constraints, but apply_tx() may be
    invoked directly by tools and tests, so they are checked again here.
    """
    t = _tx_type(env)

    if t in SYSTEM_TX_TYPES:
        if not bool(_get(env, "system", False)):
            raise ApplyError("forbidden", "system_flag_required", {"tx_type": t})
        signer = str(_get(env, "signer", "") or "").strip()
        if signer not in {system_signer_of(state), SYSTEM_SIGNER}:
            raise ApplyError(
                "forbidden",
                "system_signer_required",
                {"tx_type": t, "signer": signer, "system_signer": system_signer_of(state)},
            )

    value = int(_get(env, "value", 0) or 0)
    if value < 0:
        raise ApplyError("invalid_payload", "value_negative", {"tx_type": t, "value": value})
    if value > 0 and t not in PAYABLE_TX_TYPES:
        raise ApplyError("non_payable", "value_not_accepted", {"tx_type": t, "value": value})


_APPLIERS: tuple[ApplyFn, ...] = (
    apply_token,
    apply_roles,
    apply_native,
    apply_vault,
    apply_bridge,
)


def apply_tx(state: Json, env: Any) -> Json:
    """Dispatch a TxEnvelope to the first domain applier that claims it."""

    ensure_state(state)

    # Tests and some tools pass raw dict envelopes. Normalize to TxEnvelope so
    # domain appliers can rely on attribute access.
    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    t = _tx_type(env_norm)
    if not t:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": t})

    _enforce_apply_time_rules(state, env_norm)

    for fn in _APPLIERS:
        try:
            out = fn(state, env_norm)
        except ApplyError:
            raise
        except Exception as e:
            code = getattr(e, "code", None)
            reason = getattr(e, "reason", None)
            details = getattr(e, "details", None)

            if code is not None or reason is not None:
                raise ApplyError(
                    str(code or "domain_error"),
                    str(reason or type(e).__name__),
                    details if details is not None else {"tx_type": t, "domain": fn.__name__},
                ) from e

            raise ApplyError(
                "domain_error",
                type(e).__name__,
                {"tx_type": t, "domain": fn.__name__, "error": str(e)},
            ) from e

        if out is not None:
            return out

    raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})
