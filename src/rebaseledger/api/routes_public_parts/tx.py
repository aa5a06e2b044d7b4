from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from rebaseledger.api.errors import ApiError
from rebaseledger.api.routes_public_parts.common import _executor, _receipt_response
from rebaseledger.api.schemas import TxSubmitRequest
from rebaseledger.ledger.constants import SYSTEM_SIGNER
from rebaseledger.runtime.domain_dispatch import SYSTEM_TX_TYPES

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit")
def tx_submit(request: Request, body: TxSubmitRequest) -> Json:
    """Admit and apply a user tx envelope.

    Returns { ok, receipt }. A receipt with ok=False means the tx was applied
    and rejected by the ledger (its nonce is consumed); admission rejects
    raise instead and leave no trace.
    """
    ex = _executor(request)
    env = body.model_dump()

    tx_type = str(env.get("tx_type") or "").strip()
    signer = str(env.get("signer") or "").strip()
    params = ex.read_state().get("params") or {}
    system_signers = {SYSTEM_SIGNER, str(params.get("system_signer") or SYSTEM_SIGNER)}

    # System txs never come from public HTTP.
    if signer in system_signers or bool(env.get("system")) or tx_type in SYSTEM_TX_TYPES:
        raise ApiError.forbidden(
            "system_tx_forbidden",
            "system-only txs cannot be submitted through the public tx endpoint",
            {"tx_type": tx_type, "signer": signer},
        )

    return _receipt_response(ex.submit_tx(env))


@router.get("/tx/{tx_id}")
def tx_receipt(request: Request, tx_id: str) -> Json:
    receipt = _executor(request).get_receipt(str(tx_id).strip())
    if receipt is None:
        raise ApiError.not_found("not_found", "no receipt for tx_id", {"tx_id": tx_id})
    return {"ok": True, "receipt": receipt}


@router.get("/receipts")
def tx_receipts(request: Request, signer: str = "", limit: int = 50) -> Json:
    """Most recent receipts first, optionally filtered by signer."""
    items = _executor(request).list_receipts(signer=signer.strip() or None, limit=limit)
    return {"ok": True, "receipts": items}
