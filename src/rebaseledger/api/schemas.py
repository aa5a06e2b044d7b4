from __future__ import annotations

"""Pydantic request schemas for the public API.

These exist only for HTTP input validation; ledger-level payload checks
happen in the appliers.
"""

from typing import Any, Dict, Union

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., min_length=1, description="e.g. TOKEN_TRANSFER")
    signer: str = Field(..., min_length=1, description="Caller account id")
    nonce: int = Field(..., ge=0, description="Must equal the signer's current nonce + 1")
    payload: Dict[str, Any] = Field(default_factory=dict)
    value: int = Field(default=0, ge=0, description="Native value sent with the call")
    sig: str = Field(default="", description="Ed25519 signature (hex or base64)")
    system: bool = Field(default=False)

    model_config = {"extra": "forbid"}


class BridgeReleaseRequest(BaseModel):
    # Either the decoded message object or its canonical JSON string.
    message: Union[Dict[str, Any], str]

    model_config = {"extra": "forbid"}
