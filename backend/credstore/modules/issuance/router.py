"""Credential issuance routes."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from credstore.core.identifiers import CredentialFormatError
from credstore.core.logging import get_logger
from credstore.db.session import Storage, WorkerId
from credstore.db.storage import StorageError
from credstore.modules.issuance.schemas import IssueResponse
from credstore.modules.issuance.service import (
    CredentialConflictError,
    IssuanceError,
    IssuanceService,
)

logger = get_logger(__name__)

router = APIRouter()


def get_issuance_service(storage: Storage, worker_id: WorkerId) -> IssuanceService:
    return IssuanceService(storage, worker_id)


@router.post(
    "/issue",
    response_model=IssueResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "Invalid credential format"},
        status.HTTP_409_CONFLICT: {"description": "Credential already issued"},
    },
)
async def issue_credential(
    service: Annotated[IssuanceService, Depends(get_issuance_service)],
    credential: Annotated[Any, Body()] = None,
) -> IssueResponse:
    """Issue a credential, generating its ID when the body carries none."""
    try:
        issued = await service.issue(credential)
    except CredentialFormatError as exc:
        logger.warning("invalid_credential_format", reason=str(exc))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except CredentialConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (IssuanceError, StorageError) as exc:
        logger.error("credential_issue_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from exc

    return IssueResponse(
        message=f"Credential issued by {issued.worker}",
        worker=issued.worker,
        credential_id=issued.credential_id,
        timestamp=issued.timestamp,
    )
