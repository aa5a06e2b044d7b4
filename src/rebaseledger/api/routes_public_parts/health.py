from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def v1_health(request: Request) -> Dict[str, Any]:
    ex = getattr(request.app.state, "executor", None)
    out: Dict[str, Any] = {"ok": True, "service": "rebaseledger", "executor": ex is not None}
    if ex is not None:
        st = ex.read_state()
        out["chain_id"] = str(st.get("chain_id") or "")
        out["height"] = int(st.get("height", 0) or 0)
    return out
