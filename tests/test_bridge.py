from __future__ import annotations

import json

import pytest

from rebaseledger.ledger.state import LedgerView
from rebaseledger.runtime.apply.bridge import compute_message_id, decode_pool_data
from rebaseledger.runtime.chain_config import default_ledger_config
from rebaseledger.runtime.domain_apply import ApplyError, apply_tx, apply_tx_atomic
from rebaseledger.runtime.genesis import build_genesis_state
from rebaseledger.runtime.tx_admission_types import TxEnvelope

SOURCE_RATE = 5 * 10**10
DEST_RATE = 10**10


def _chain(chain_id: str) -> dict:
    st = build_genesis_state(default_ledger_config())
    st["chain_id"] = chain_id
    return st


def _env(tx_type: str, payload: dict, signer: str = "alice", nonce: int = 1) -> TxEnvelope:
    return TxEnvelope(tx_type=tx_type, signer=signer, nonce=nonce, payload=payload, sig="sig")


def _release(st: dict, message) -> dict:
    return apply_tx(
        st,
        TxEnvelope(tx_type="BRIDGE_RELEASE", signer="SYSTEM", nonce=0, payload={"message": message}, system=True),
    )


def _lock(src: dict, amount: int = 400) -> dict:
    apply_tx(src, _env("TOKEN_MINT", {"to": "alice", "amount": 1_000, "rate": SOURCE_RATE}, signer="VAULT"))
    return apply_tx(src, _env("BRIDGE_LOCK", {"amount": amount, "dest_chain": "chain-b", "receiver": "bob"}))


def test_lock_burns_and_emits_message_with_user_rate() -> None:
    src = _chain("chain-a")
    meta = _lock(src)

    msg = meta["message"]
    assert msg["rate"] == SOURCE_RATE
    assert msg["amount"] == 400
    assert msg["source_chain"] == "chain-a"
    assert msg["message_id"] == compute_message_id(msg)

    v = LedgerView.from_ledger(src)
    assert v.principal_balance_of("alice") == 600
    assert v.total_supply() == 600
    assert src["bridge"]["outbox"] == [msg]


def test_release_mints_at_preserved_rate_not_destination_rate() -> None:
    src = _chain("chain-a")
    meta = _lock(src)

    dst = _chain("chain-b")
    apply_tx(dst, _env("RATE_SET", {"rate": DEST_RATE}, signer="owner"))

    out = _release(dst, meta["pool_data"])
    assert out["applied"] == "BRIDGE_RELEASE"

    v = LedgerView.from_ledger(dst)
    assert v.balance_of("bob") == 400
    assert v.get_user_rate("bob") == SOURCE_RATE
    assert v.get_global_rate() == DEST_RATE


def test_release_is_idempotent_per_message() -> None:
    src = _chain("chain-a")
    meta = _lock(src)
    dst = _chain("chain-b")
    _release(dst, meta["message"])

    with pytest.raises(ApplyError) as ei:
        apply_tx_atomic(
            dst,
            TxEnvelope(tx_type="BRIDGE_RELEASE", signer="SYSTEM", nonce=0, payload={"message": meta["message"]}, system=True),
        )
    assert ei.value.code == "conflict"
    assert LedgerView.from_ledger(dst).total_supply() == 400


def test_release_rejects_wrong_destination_and_tampering() -> None:
    src = _chain("chain-a")
    meta = _lock(src)

    other = _chain("chain-c")
    with pytest.raises(ApplyError) as ei:
        _release(other, meta["message"])
    assert ei.value.reason == "wrong_dest_chain"

    tampered = dict(meta["message"], amount=10**9)
    with pytest.raises(ApplyError) as ei2:
        decode_pool_data(json.dumps(tampered))
    assert ei2.value.reason == "message_id_mismatch"


def test_release_requires_system_signer() -> None:
    dst = _chain("chain-b")
    with pytest.raises(ApplyError) as ei:
        apply_tx(dst, _env("BRIDGE_RELEASE", {"message": {}}))
    assert ei.value.code == "forbidden"


def test_lock_rejects_all_and_overdraw() -> None:
    src = _chain("chain-a")
    apply_tx(src, _env("TOKEN_MINT", {"to": "alice", "amount": 10}, signer="VAULT"))

    with pytest.raises(ApplyError) as ei:
        apply_tx(src, _env("BRIDGE_LOCK", {"amount": "all", "dest_chain": "chain-b"}))
    assert ei.value.code == "invalid_payload"

    with pytest.raises(ApplyError) as ei2:
        apply_tx_atomic(src, _env("BRIDGE_LOCK", {"amount": 11, "dest_chain": "chain-b"}))
    assert ei2.value.code == "insufficient_balance"
    assert src["bridge"]["outbox"] == []
