from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ApplyError(Exception):
    """Canonical error type for domain apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    def to_json(self) -> dict:
        return {"code": self.code, "reason": self.reason, "details": self.details}


class AuthorizationError(ApplyError):
    """Caller lacks the mint/burn role or is not the owner."""

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("forbidden", reason, details)


class RateIncreaseRejected(ApplyError):
    def __init__(self, old_rate: int, new_rate: int) -> None:
        super().__init__(
            "invalid_rate",
            "rate_can_only_decrease",
            {"old_rate": int(old_rate), "new_rate": int(new_rate)},
        )

    @property
    def old_rate(self) -> int:
        return int(self.details["old_rate"])

    @property
    def new_rate(self) -> int:
        return int(self.details["new_rate"])


class InsufficientBalance(ApplyError):
    def __init__(self, account: str, available: int, requested: int) -> None:
        super().__init__(
            "insufficient_balance",
            "amount_exceeds_principal",
            {"account": account, "available": int(available), "requested": int(requested)},
        )


class InsufficientAllowance(ApplyError):
    def __init__(self, owner: str, spender: str, allowance: int, requested: int) -> None:
        super().__init__(
            "insufficient_allowance",
            "amount_exceeds_allowance",
            {"owner": owner, "spender": spender, "allowance": int(allowance), "requested": int(requested)},
        )


class PayoutFailure(ApplyError):
    """Native value could not be delivered during a redemption."""

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("payout_failed", reason, details)


class InvalidPayload(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("invalid_payload", reason, details)
