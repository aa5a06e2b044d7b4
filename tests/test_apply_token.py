from __future__ import annotations

import pytest

from rebaseledger.ledger.constants import MAX_ALLOWANCE
from rebaseledger.ledger.state import LedgerView
from rebaseledger.runtime.chain_config import default_ledger_config
from rebaseledger.runtime.domain_apply import ApplyError, apply_tx
from rebaseledger.runtime.errors import InsufficientAllowance, InsufficientBalance
from rebaseledger.runtime.genesis import build_genesis_state
from rebaseledger.runtime.state_invariants import ledger_invariant_violations
from rebaseledger.runtime.tx_admission_types import TxEnvelope

# 1% per second: 100 seconds doubles the principal.
RATE = 10**16


def _state(now_s: int = 0) -> dict:
    st = build_genesis_state(default_ledger_config())
    st["tip_ts_ms"] = now_s * 1000
    return st


def _at(st: dict, now_s: int) -> None:
    st["tip_ts_ms"] = now_s * 1000


def _env(tx_type: str, payload: dict, signer: str = "alice", nonce: int = 1) -> TxEnvelope:
    return TxEnvelope(tx_type=tx_type, signer=signer, nonce=nonce, payload=payload, sig="sig")


def _mint(st: dict, to: str, amount: int, rate: int = RATE) -> dict:
    return apply_tx(st, _env("TOKEN_MINT", {"to": to, "amount": amount, "rate": rate}, signer="VAULT"))


def _view(st: dict) -> LedgerView:
    return LedgerView.from_ledger(st)


def test_mint_sets_rate_and_supply() -> None:
    st = _state()
    meta = _mint(st, "alice", 1_000)
    assert meta["applied"] == "TOKEN_MINT"

    v = _view(st)
    assert v.balance_of("alice") == 1_000
    assert v.principal_balance_of("alice") == 1_000
    assert v.get_user_rate("alice") == RATE
    assert v.total_supply() == 1_000


def test_mint_without_rate_uses_global_rate() -> None:
    st = _state()
    apply_tx(st, _env("TOKEN_MINT", {"to": "alice", "amount": 10}, signer="VAULT"))
    assert _view(st).get_user_rate("alice") == _view(st).get_global_rate()


def test_balance_accrues_without_touching_principal() -> None:
    st = _state()
    _mint(st, "alice", 1_000)
    _at(st, 100)

    v = _view(st)
    assert v.balance_of("alice") == 2_000
    assert v.principal_balance_of("alice") == 1_000
    # Unrealized interest is not part of total supply.
    assert v.total_supply() == 1_000


def test_second_mint_realizes_interest_first() -> None:
    st = _state()
    _mint(st, "alice", 1_000)
    _at(st, 50)
    meta = _mint(st, "alice", 10)

    events = [e["event"] for e in meta["events"]]
    assert events == ["interest_realized", "token_minted"]
    v = _view(st)
    assert v.principal_balance_of("alice") == 1_510
    assert v.total_supply() == 1_510
    assert v.last_update_of("alice") == 50


def test_transfer_propagates_rate_to_empty_recipient_only() -> None:
    st = _state()
    _mint(st, "alice", 1_000, rate=RATE)
    apply_tx(st, _env("TOKEN_TRANSFER", {"to": "bob", "amount": 100}))
    assert _view(st).get_user_rate("bob") == RATE

    # carol holds tokens at a lower rate; sending to bob must not overwrite bob's rate.
    _mint(st, "carol", 1_000, rate=RATE // 10)
    apply_tx(st, _env("TOKEN_TRANSFER", {"to": "bob", "amount": 10}, signer="carol"))
    assert _view(st).get_user_rate("bob") == RATE
    assert _view(st).principal_balance_of("bob") == 110


def test_transfer_to_drained_account_takes_sender_rate() -> None:
    st = _state()
    _mint(st, "bob", 100, rate=RATE)
    apply_tx(st, _env("TOKEN_TRANSFER", {"to": "alice", "amount": "all"}, signer="bob"))
    assert _view(st).balance_of("bob") == 0

    _mint(st, "carol", 100, rate=RATE // 4)
    apply_tx(st, _env("TOKEN_TRANSFER", {"to": "bob", "amount": 1}, signer="carol"))
    assert _view(st).get_user_rate("bob") == RATE // 4


def test_transfer_all_resolves_after_realization() -> None:
    st = _state()
    _mint(st, "alice", 1_000)
    _at(st, 50)

    meta = apply_tx(st, _env("TOKEN_TRANSFER", {"to": "bob", "amount": "all"}))
    assert meta["amount"] == 1_500

    v = _view(st)
    assert v.balance_of("alice") == 0
    assert v.principal_balance_of("bob") == 1_500
    assert v.total_supply() == 1_500
    assert ledger_invariant_violations(st) == []


def test_transfer_conserves_principal() -> None:
    st = _state()
    _mint(st, "alice", 1_000)
    _mint(st, "bob", 500)
    _at(st, 10)

    # Realize both sides first so the before/after comparison isolates the move.
    apply_tx(st, _env("TOKEN_TRANSFER", {"to": "bob", "amount": 0}))
    before = _view(st).principal_balance_of("alice") + _view(st).principal_balance_of("bob")
    apply_tx(st, _env("TOKEN_TRANSFER", {"to": "bob", "amount": 333}))
    after = _view(st).principal_balance_of("alice") + _view(st).principal_balance_of("bob")

    assert before == after
    assert ledger_invariant_violations(st) == []


def test_transfer_insufficient_balance_leaves_no_partial_move() -> None:
    st = _state()
    _mint(st, "alice", 1_000)

    with pytest.raises(InsufficientBalance) as ei:
        apply_tx(st, _env("TOKEN_TRANSFER", {"to": "bob", "amount": 1_001}))
    assert ei.value.code == "insufficient_balance"
    assert ei.value.details["requested"] == 1_001
    assert _view(st).principal_balance_of("alice") == 1_000
    assert _view(st).principal_balance_of("bob") == 0


def test_transfer_from_spends_allowance() -> None:
    st = _state()
    _mint(st, "alice", 1_000)
    apply_tx(st, _env("TOKEN_APPROVE", {"spender": "carol", "amount": 300}))

    meta = apply_tx(st, _env("TOKEN_TRANSFER_FROM", {"from": "alice", "to": "bob", "amount": 200}, signer="carol"))
    assert meta["applied"] == "TOKEN_TRANSFER_FROM"
    assert _view(st).allowance("alice", "carol") == 100
    assert _view(st).principal_balance_of("bob") == 200

    with pytest.raises(InsufficientAllowance):
        apply_tx(st, _env("TOKEN_TRANSFER_FROM", {"from": "alice", "to": "bob", "amount": 200}, signer="carol"))


def test_unlimited_allowance_is_not_decremented() -> None:
    st = _state()
    _mint(st, "alice", 1_000)
    apply_tx(st, _env("TOKEN_APPROVE", {"spender": "carol", "amount": "all"}))
    apply_tx(st, _env("TOKEN_TRANSFER_FROM", {"from": "alice", "to": "bob", "amount": 400}, signer="carol"))
    assert _view(st).allowance("alice", "carol") == MAX_ALLOWANCE


def test_transfer_missing_recipient_is_invalid_payload() -> None:
    st = _state()
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("TOKEN_TRANSFER", {"amount": 1}))
    assert ei.value.code == "invalid_payload"
    assert ei.value.reason == "missing_to"


def test_unknown_tx_type_fails_closed() -> None:
    st = _state()
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _env("TOKEN_FREEZE", {}))
    assert ei.value.code == "tx_unimplemented"


def test_value_on_non_payable_tx_is_rejected() -> None:
    st = _state()
    env = TxEnvelope(tx_type="TOKEN_TRANSFER", signer="alice", nonce=1, payload={"to": "bob", "amount": 0}, value=5)
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, env)
    assert ei.value.code == "non_payable"
