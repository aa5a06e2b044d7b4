from __future__ import annotations

from rebaseledger.runtime.chain_config import ledger_config_from_dict
from rebaseledger.runtime.genesis import build_genesis_state
from rebaseledger.runtime.tx_admission import admit_tx


def _state() -> dict:
    cfg = ledger_config_from_dict({"chain_id": "adm", "mode": "dev", "require_signatures": False})
    return build_genesis_state(cfg)


def test_admits_next_nonce() -> None:
    ok, rej = admit_tx({"tx_type": "TOKEN_TRANSFER", "signer": "alice", "nonce": 1, "payload": {}}, _state())
    assert ok is True
    assert rej is None


def test_rejects_shape_and_unknown_types() -> None:
    st = _state()
    assert admit_tx("nope", st).code == "bad_shape"
    assert admit_tx({"tx_type": "", "signer": "alice", "nonce": 1}, st).reason == "missing_tx_type"
    assert admit_tx({"tx_type": "TOKEN_TRANSFER", "signer": " ", "nonce": 1}, st).reason == "missing_signer"
    assert admit_tx({"tx_type": "token_transfer", "signer": "alice", "nonce": 1}, st).code == "unknown_tx"


def test_rejects_wrong_nonce() -> None:
    v = admit_tx({"tx_type": "TOKEN_TRANSFER", "signer": "alice", "nonce": 2, "payload": {}}, _state())
    assert v.ok is False
    assert v.code == "bad_nonce"
    assert v.details["expected"] == 1


def test_value_only_on_payable_types() -> None:
    st = _state()
    v = admit_tx({"tx_type": "TOKEN_TRANSFER", "signer": "alice", "nonce": 1, "value": 5}, st)
    assert v.code == "non_payable"
    assert admit_tx({"tx_type": "VAULT_DEPOSIT", "signer": "alice", "nonce": 1, "value": 5}, st).ok is True


def test_system_types_need_system_signer_and_flag() -> None:
    st = _state()
    base = {"tx_type": "BRIDGE_RELEASE", "nonce": 0, "payload": {}}
    assert admit_tx(dict(base, signer="alice", system=True), st).code == "forbidden"
    assert admit_tx(dict(base, signer="SYSTEM"), st).code == "forbidden"
    assert admit_tx(dict(base, signer="SYSTEM", system=True), st).ok is True


def test_oversized_envelope_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("REBASE_MAX_TX_ENVELOPE_BYTES", "256")
    tx = {"tx_type": "TOKEN_TRANSFER", "signer": "alice", "nonce": 1, "payload": {"pad": "x" * 500}}
    assert admit_tx(tx, _state()).code == "tx_too_large"
