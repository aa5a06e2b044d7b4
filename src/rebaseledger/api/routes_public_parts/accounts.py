from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from rebaseledger.api.routes_public_parts.common import _account_param, _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/accounts/{account}")
def v1_account(request: Request, account: str) -> Json:
    """Balances are evaluated at the current time; unknown accounts read as zero."""
    v = _view(request)
    out = v.account_summary(_account_param(account))
    out["ok"] = True
    out["now_s"] = v.now_s
    return out


@router.get("/accounts/{account}/allowances/{spender}")
def v1_allowance(request: Request, account: str, spender: str) -> Json:
    owner = _account_param(account)
    sp = _account_param(spender)
    return {"ok": True, "owner": owner, "spender": sp, "allowance": _view(request).allowance(owner, sp)}
