"""
Operational inspection endpoints.

Not part of the credential contract; mounted only when
``debug_endpoints_enabled`` is set.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, HTTPException, Request, status
from pydantic import BaseModel

from credstore.core.logging import get_logger
from credstore.core.rate_limit import get_client_ip
from credstore.db.session import Storage
from credstore.db.storage import StorageError

logger = get_logger(__name__)

router = APIRouter()
echo_router = APIRouter()


class CredentialListResponse(BaseModel):
    count: int
    ids: list[str]


class EchoResponse(BaseModel):
    received: bool = True
    body: Any = None
    headers: dict[str, str]


@router.get("/credentials", response_model=CredentialListResponse)
async def list_credentials(storage: Storage) -> CredentialListResponse:
    """List every stored credential ID."""
    try:
        ids = await storage.list_ids()
    except StorageError as exc:
        logger.error("credential_list_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list credentials",
        ) from exc
    return CredentialListResponse(count=len(ids), ids=ids)


@echo_router.post("/echo", response_model=EchoResponse)
async def echo(request: Request, body: Annotated[Any, Body()] = None) -> EchoResponse:
    """Echo the request body and headers back, for frontend connectivity checks."""
    logger.info("debug_echo", client_ip=get_client_ip(request), body=body)
    return EchoResponse(body=body, headers=dict(request.headers))
