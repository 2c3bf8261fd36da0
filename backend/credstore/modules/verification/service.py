"""Service layer for verifying issued credentials."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from credstore.core.identifiers import CredentialFormatError, require_document
from credstore.core.logging import get_logger
from credstore.db.storage import CredentialStorage
from credstore.modules.verification.schemas import VerificationStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    """What storage knows about a credential ID."""

    credential_id: str
    status: VerificationStatus
    worker: str | None = None
    timestamp: str | None = None
    credential: dict[str, Any] | None = None

    @property
    def is_valid(self) -> bool:
        return self.status is VerificationStatus.VALID


class VerificationService:
    """Read-only lookups of issued credentials."""

    def __init__(self, storage: CredentialStorage) -> None:
        self._storage = storage

    async def verify(self, candidate: Any) -> VerificationResult:
        """
        Look up the credential named by ``candidate["id"]``.

        An unknown ID yields ``VerificationStatus.INVALID`` rather than an
        exception. Storage is never written.
        """
        document = require_document(candidate)
        credential_id = document.get("id")
        if not credential_id:
            raise CredentialFormatError("Credential ID is required")
        if not isinstance(credential_id, str):
            raise CredentialFormatError("Credential ID must be a non-empty string")

        stored = await self._storage.get(credential_id)
        if stored is None:
            logger.info("credential_not_found", credential_id=credential_id)
            return VerificationResult(credential_id=credential_id, status=VerificationStatus.INVALID)

        logger.info("credential_verified", credential_id=credential_id)
        return VerificationResult(
            credential_id=credential_id,
            status=VerificationStatus.VALID,
            worker=stored.get("worker"),
            timestamp=stored.get("timestamp"),
            credential=stored.get("credential"),
        )
