from __future__ import annotations

import pytest

from rebaseledger.ledger.amounts import All, AmountParseError, Exact, amount_to_wire, parse_amount, resolve_amount


def test_parse_exact_and_all() -> None:
    assert parse_amount(5) == Exact(5)
    assert parse_amount("42") == Exact(42)
    assert parse_amount("all") == All()
    assert parse_amount(" ALL ") == All()


@pytest.mark.parametrize("raw", [None, True, -1, "abc", 1.5, "-3"])
def test_parse_rejects_bad_values(raw) -> None:
    with pytest.raises(AmountParseError):
        parse_amount(raw)


def test_all_can_be_disallowed() -> None:
    with pytest.raises(AmountParseError) as ei:
        parse_amount("all", allow_all=False)
    assert str(ei.value) == "all_not_allowed"


def test_resolve_and_wire_form() -> None:
    assert resolve_amount(All(), 999) == 999
    assert resolve_amount(Exact(3), 999) == 3
    assert amount_to_wire(All()) == "all"
    assert amount_to_wire(Exact(7)) == 7
