from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from rebaseledger.api.routes_public_parts.common import _view

router = APIRouter()


@router.get("/vault")
def v1_vault(request: Request) -> Dict[str, Any]:
    v = _view(request)
    vault = v.vault_account()
    return {
        "ok": True,
        "vault_account": vault,
        "reserve": v.vault_reserve(),
        "rebase_token": v.rebase_token_address(),
        "has_mint_and_burn": v.has_role(vault),
    }
