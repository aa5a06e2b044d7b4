from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from rebaseledger.api.routes_public_parts.common import _executor, _receipt_response
from rebaseledger.api.schemas import BridgeReleaseRequest
from rebaseledger.api.security import require_bridge_operator

router = APIRouter()

Json = Dict[str, Any]


@router.get("/bridge/outbox")
def v1_bridge_outbox(request: Request, after_seq: int = 0, limit: int = 100) -> Json:
    """Outbound lock messages for the external transport to pick up."""
    limit = max(1, min(int(limit), 1000))
    items = [m for m in _executor(request).bridge_outbox() if int(m.get("seq", 0)) > int(after_seq)]
    return {"ok": True, "messages": items[:limit]}


@router.post("/bridge/release")
def v1_bridge_release(request: Request, body: BridgeReleaseRequest) -> Json:
    """Deliver an inbound message; applied as a system BRIDGE_RELEASE."""
    require_bridge_operator(request)
    receipt = _executor(request).submit_system_tx("BRIDGE_RELEASE", {"message": body.message})
    return _receipt_response(receipt)
