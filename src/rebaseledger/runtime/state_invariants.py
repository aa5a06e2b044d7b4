# src/rebaseledger/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Ledger state is a nested JSON-like dict mutated by the apply/* modules.
This module is the single place that:

  - validates the state is dict-like
  - ensures core top-level containers exist (so domain modules can rely on them)
  - checks the cross-account invariants after a commit

Domain-specific containers (token, native, bridge) are created by the
corresponding apply module.
"""

from collections.abc import MutableMapping
from typing import Any, Dict, List

Json = Dict[str, Any]


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains core keys.

    Raises:
        TypeError: if st is not a MutableMapping
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    acc = st.get("accounts")
    if acc is None:
        st["accounts"] = {}
    elif not isinstance(acc, dict):
        raise TypeError(f"state['accounts'] must be dict, got {type(acc)}")

    params = st.get("params")
    if params is None:
        st["params"] = {}
    elif not isinstance(params, dict):
        raise TypeError(f"state['params'] must be dict, got {type(params)}")

    roles = st.get("roles")
    if roles is None:
        st["roles"] = {}
    elif not isinstance(roles, dict):
        raise TypeError(f"state['roles'] must be dict, got {type(roles)}")

    return st  # type: ignore[return-value]


def ledger_invariant_violations(st: Json) -> List[str]:
    """Return human-readable invariant violations (empty list when healthy).

    Checked:
      - total_supply equals the sum of every account's realized principal
      - no account holds a negative principal or rate
      - the global rate never rose above the lowest rate ever set
      - vault/native balances are non-negative
    """
    out: List[str] = []

    accounts = st.get("accounts") if isinstance(st.get("accounts"), dict) else {}
    token = st.get("token") if isinstance(st.get("token"), dict) else {}

    total = 0
    for acct_id, acct in sorted(accounts.items()):
        if not isinstance(acct, dict):
            continue
        principal = int(acct.get("principal", 0) or 0)
        rate = int(acct.get("rate", 0) or 0)
        if principal < 0:
            out.append(f"negative_principal:{acct_id}")
        if rate < 0:
            out.append(f"negative_rate:{acct_id}")
        total += principal

    supply = int(token.get("total_supply", 0) or 0)
    if supply != total:
        out.append(f"total_supply_mismatch:supply={supply}:sum_principal={total}")

    if "global_rate" in token:
        global_rate = int(token.get("global_rate", 0) or 0)
        if global_rate < 0:
            out.append("negative_global_rate")
        floor = token.get("rate_floor")
        if floor is not None and global_rate > int(floor):
            out.append(f"global_rate_increased:rate={global_rate}:floor={int(floor)}")

    native = st.get("native") if isinstance(st.get("native"), dict) else {}
    balances = native.get("balances") if isinstance(native.get("balances"), dict) else {}
    for acct_id, bal in sorted(balances.items()):
        if int(bal or 0) < 0:
            out.append(f"negative_native_balance:{acct_id}")

    return out


__all__ = ["ensure_state", "ledger_invariant_violations"]
