# src/rebaseledger/ledger/accrual.py
from __future__ import annotations

"""Linear interest accrual.

    linear_factor   = PRECISION + rate * elapsed_s
    accrued_balance = principal * linear_factor // PRECISION

Integer division truncates toward zero. The truncation is a known, small
systematic underpayment and is deliberately not rounded up.
"""

from typing import Any, Dict

from rebaseledger.ledger.constants import PRECISION

Json = Dict[str, Any]


def elapsed_seconds(last_update_s: int, now_s: int) -> int:
    # Commit time is non-decreasing; clamp anyway so a stale record never yields negative interest.
    return max(0, int(now_s) - int(last_update_s))


def linear_factor(rate: int, elapsed_s: int) -> int:
    return PRECISION + int(rate) * int(elapsed_s)


def accrued_balance(principal: int, rate: int, last_update_s: int, now_s: int) -> int:
    principal_i = int(principal)
    if principal_i <= 0:
        return 0
    factor = linear_factor(rate, elapsed_seconds(last_update_s, now_s))
    return (principal_i * factor) // PRECISION


def account_accrued_balance(acct: Json, now_s: int) -> int:
    """Accrued balance of an account record (missing fields read as zero)."""
    return accrued_balance(
        int(acct.get("principal", 0) or 0),
        int(acct.get("rate", 0) or 0),
        int(acct.get("last_update_s", 0) or 0),
        now_s,
    )


def pending_interest(acct: Json, now_s: int) -> int:
    principal = int(acct.get("principal", 0) or 0)
    return max(0, account_accrued_balance(acct, now_s) - principal)
