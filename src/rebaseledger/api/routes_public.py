# src/rebaseledger/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from rebaseledger.api.routes_public_parts.accounts import router as accounts_router
from rebaseledger.api.routes_public_parts.bridge import router as bridge_router
from rebaseledger.api.routes_public_parts.health import router as health_router
from rebaseledger.api.routes_public_parts.ledger import router as ledger_router
from rebaseledger.api.routes_public_parts.tx import router as tx_router
from rebaseledger.api.routes_public_parts.vault import router as vault_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(ledger_router, prefix="/v1", tags=["ledger"])
public_router.include_router(accounts_router, prefix="/v1", tags=["accounts"])
public_router.include_router(vault_router, prefix="/v1", tags=["vault"])
public_router.include_router(bridge_router, prefix="/v1", tags=["bridge"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])
