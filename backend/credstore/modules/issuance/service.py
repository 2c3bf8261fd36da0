"""Service layer for issuing credentials."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from credstore.core.identifiers import (
    generate_credential_id,
    normalize_credential_id,
    require_document,
)
from credstore.core.logging import get_logger
from credstore.db.storage import CredentialAlreadyExistsError, CredentialStorage

logger = get_logger(__name__)

# Regeneration bound for a generated ID that collides with a stored one
_MAX_GENERATED_ID_ATTEMPTS = 3


class IssuanceError(ValueError):
    """Base issuance error."""


class CredentialConflictError(IssuanceError):
    """Raised when a credential with the requested ID was already issued."""

    def __init__(self, credential_id: str) -> None:
        super().__init__("Credential already issued")
        self.credential_id = credential_id


@dataclass(frozen=True)
class IssuedCredential:
    """Identity and audit metadata of a newly stored credential."""

    credential_id: str
    worker: str
    timestamp: str


class IssuanceService:
    """Assigns credential IDs and stores each credential exactly once."""

    def __init__(self, storage: CredentialStorage, worker_id: str) -> None:
        self._storage = storage
        self._worker_id = worker_id

    async def issue(self, candidate: Any) -> IssuedCredential:
        """
        Issue ``candidate`` as a new credential.

        Raises ``CredentialFormatError`` for anything but a JSON object (or an
        object whose ``id`` is not a non-empty string) and
        ``CredentialConflictError`` when the ID is already taken. Nothing is
        written on either path.
        """
        document = require_document(candidate)

        supplied_id = document.get("id")
        if supplied_id is not None:
            return await self._store(document, normalize_credential_id(supplied_id))

        for attempt in range(1, _MAX_GENERATED_ID_ATTEMPTS + 1):
            try:
                return await self._store(document, generate_credential_id())
            except CredentialConflictError as exc:
                logger.warning(
                    "generated_credential_id_collision",
                    credential_id=exc.credential_id,
                    attempt=attempt,
                )
        raise IssuanceError("Could not generate a unique credential ID")

    async def _store(self, document: dict[str, Any], credential_id: str) -> IssuedCredential:
        if await self._storage.exists(credential_id):
            logger.info("credential_already_issued", credential_id=credential_id)
            raise CredentialConflictError(credential_id)

        issued_at = datetime.now(UTC).isoformat()
        try:
            await self._storage.save(
                credential_id,
                {
                    "credential": {**document, "id": credential_id},
                    "worker": self._worker_id,
                    "timestamp": issued_at,
                },
            )
        except CredentialAlreadyExistsError as exc:
            # Lost the race against a concurrent issuer after the exists check
            logger.info("credential_already_issued", credential_id=credential_id, raced=True)
            raise CredentialConflictError(credential_id) from exc

        logger.info("credential_issued", credential_id=credential_id, worker=self._worker_id)
        return IssuedCredential(
            credential_id=credential_id,
            worker=self._worker_id,
            timestamp=issued_at,
        )
