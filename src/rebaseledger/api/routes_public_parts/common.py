from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from rebaseledger.api.errors import ApiError
from rebaseledger.ledger.state import LedgerView

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _view(request: Request) -> LedgerView:
    """Read-only ledger view evaluated at the executor's clock."""
    return _executor(request).view()


def _account_param(v: Any) -> str:
    s = str(v or "").strip()
    if not s:
        raise ApiError.bad_request("bad_request", "account id must be non-empty", {})
    return s


def _receipt_response(receipt: Json) -> Json:
    """Map an executor receipt/verdict to an HTTP response body or raise."""
    if "tx_id" not in receipt:
        # Admission reject: nothing was applied.
        code = str(receipt.get("error") or "rejected")
        status = 409 if code in {"bad_nonce", "duplicate_tx"} else 400
        if code in {"bad_sig", "forbidden"}:
            status = 403
        raise ApiError(
            status,
            code,
            str(receipt.get("reason") or "tx rejected"),
            {"details": receipt.get("details")},
        )
    return {"ok": bool(receipt.get("ok")), "receipt": receipt}
