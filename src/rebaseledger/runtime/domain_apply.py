# src/rebaseledger/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying tx envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from rebaseledger.runtime.domain_dispatch import ApplyError, apply_tx
from rebaseledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _is_system(env: Any) -> bool:
    if isinstance(env, dict):
        return bool(env.get("system", False))
    return bool(getattr(env, "system", False))


def _signer(env: Any) -> str:
    if isinstance(env, dict):
        return str(env.get("signer") or "").strip()
    return str(getattr(env, "signer", "") or "").strip()


def _nonce(env: Any) -> int:
    if isinstance(env, dict):
        try:
            return int(env.get("nonce") or 0)
        except Exception:
            return 0
    try:
        return int(getattr(env, "nonce", 0) or 0)
    except Exception:
        return 0


def _consume_nonce(state: Json, env: Any) -> None:
    """Record the signer's nonce.

    - non-system txs consume their nonce whether apply succeeds or fails
    - system txs do not consume nonces
    """

    if _is_system(env):
        return

    signer = _signer(env)
    if not signer:
        return

    accounts = state.setdefault("accounts", {})
    acct = accounts.get(signer)
    if not isinstance(acct, dict):
        acct = {}
        accounts[signer] = acct

    acct["nonce"] = max(int(acct.get("nonce", 0) or 0), _nonce(env))


def apply_tx_atomic(
    state: Json,
    env: Any,
    *,
    consume_nonce: bool = True,
) -> Optional[Json]:
    """Apply a tx with fail-atomic semantics.

    On success:
      - state is updated as if apply_tx() ran directly.

    On ApplyError:
      - state remains unchanged, except (optionally) nonce consumption.

    A rejected tx must never leave partial state behind (e.g. tokens burned
    without the matching native payout).
    """

    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    snapshot = copy.deepcopy(state)

    try:
        meta = apply_tx(snapshot, env_norm)
    except ApplyError:
        if consume_nonce:
            _consume_nonce(state, env_norm)
        raise

    if consume_nonce:
        _consume_nonce(snapshot, env_norm)

    # Commit by replacing contents in-place so callers holding references
    # to `state` see the updated view.
    state.clear()
    state.update(snapshot)
    return meta


__all__ = ["ApplyError", "apply_tx", "apply_tx_atomic", "Json"]
