from __future__ import annotations

import os

from fastapi import FastAPI

from rebaseledger.api.errors import ApiError, api_error_handler
from rebaseledger.api.routes_public import public_router
from rebaseledger.api.security import RequestSizeLimitMiddleware
from rebaseledger.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from rebaseledger.runtime.executor_boot import build_executor as _build_executor


def build_executor():
    """Build a LedgerExecutor for API runtime.

    Tests monkeypatch `rebaseledger.api.app.build_executor` through this wrapper.
    """
    return _build_executor()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load ledger config + attach executor
      - False: keep lightweight; callers attach app.state.executor themselves
    """
    configure_structured_logging()
    mode = os.environ.get("REBASE_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Rebase Ledger API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Rebase Ledger API")

    app.state.executor = build_executor() if boot_runtime else None

    # Size limiter is added last so it runs first.
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.add_exception_handler(ApiError, api_error_handler)
    app.include_router(public_router)

    return app
