# src/rebaseledger/ledger/amounts.py
from __future__ import annotations

"""Amount requests.

An operation either asks for an exact amount or for "everything". The
"everything" request is resolved to a concrete integer by whichever
component owns the up-to-date balance:

  - transfers resolve it inside the ledger, after interest realization
  - vault redemptions resolve it against the live balance before burning
  - burns never accept it
"""

from dataclasses import dataclass
from typing import Any, Union

from rebaseledger.ledger.constants import ALL_AMOUNT_TOKEN


@dataclass(frozen=True, slots=True)
class Exact:
    amount: int


@dataclass(frozen=True, slots=True)
class All:
    pass


AmountRequest = Union[Exact, All]


class AmountParseError(ValueError):
    pass


def parse_amount(v: Any, *, allow_all: bool = True) -> AmountRequest:
    """Parse a wire amount: a non-negative int (or int string), or "all"."""
    if isinstance(v, (Exact, All)):
        if isinstance(v, All) and not allow_all:
            raise AmountParseError("all_not_allowed")
        return v

    if isinstance(v, str) and v.strip().lower() == ALL_AMOUNT_TOKEN:
        if not allow_all:
            raise AmountParseError("all_not_allowed")
        return All()

    if isinstance(v, bool) or v is None:
        raise AmountParseError("amount_required")

    if isinstance(v, int):
        n = v
    elif isinstance(v, str) and v.strip().isdigit():
        n = int(v.strip())
    else:
        raise AmountParseError("amount_not_integer")

    if n < 0:
        raise AmountParseError("amount_negative")
    return Exact(n)


def resolve_amount(req: AmountRequest, available: int) -> int:
    if isinstance(req, All):
        return int(available)
    return int(req.amount)


def amount_to_wire(req: AmountRequest) -> Any:
    return ALL_AMOUNT_TOKEN if isinstance(req, All) else int(req.amount)
