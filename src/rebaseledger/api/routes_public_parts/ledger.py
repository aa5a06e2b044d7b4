from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from rebaseledger.api.routes_public_parts.common import _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/ledger")
def v1_ledger(request: Request) -> Json:
    v = _view(request)
    return {
        "ok": True,
        "token_id": v.rebase_token_address(),
        "owner": v.owner(),
        "precision": v.precision,
        "global_rate": v.get_global_rate(),
        "total_supply": v.total_supply(),
        "mint_and_burn": v.role_holders(),
        "now_s": v.now_s,
        "tip_ts_ms": v.tip_ts_ms,
    }
