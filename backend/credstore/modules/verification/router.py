"""Credential verification routes."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from credstore.core.identifiers import CredentialFormatError
from credstore.core.logging import get_logger
from credstore.db.session import Storage
from credstore.db.storage import StorageError
from credstore.modules.verification.schemas import VerificationResponse, VerificationStatus
from credstore.modules.verification.service import VerificationService

logger = get_logger(__name__)

router = APIRouter()


def get_verification_service(storage: Storage) -> VerificationService:
    return VerificationService(storage)


@router.post(
    "/verify",
    response_model=VerificationResponse,
    response_model_exclude_none=True,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "Invalid credential format or missing ID"},
        status.HTTP_404_NOT_FOUND: {
            "model": VerificationResponse,
            "description": "Credential not found",
        },
    },
)
async def verify_credential(
    service: Annotated[VerificationService, Depends(get_verification_service)],
    credential: Annotated[Any, Body()] = None,
) -> VerificationResponse | JSONResponse:
    """Report whether the credential's ID was issued, with its issuance metadata."""
    try:
        result = await service.verify(credential)
    except CredentialFormatError as exc:
        logger.warning("invalid_verification_request", reason=str(exc))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StorageError as exc:
        logger.error("credential_verify_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from exc

    if not result.is_valid:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"status": VerificationStatus.INVALID.value, "message": "Credential not found"},
        )

    return VerificationResponse(
        status=result.status,
        worker=result.worker,
        timestamp=result.timestamp,
        credential=result.credential,
    )
