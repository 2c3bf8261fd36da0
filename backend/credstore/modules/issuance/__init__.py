"""Credential issuance: ID assignment and exactly-once storage."""

from credstore.modules.issuance.schemas import IssueResponse
from credstore.modules.issuance.service import (
    CredentialConflictError,
    IssuanceError,
    IssuanceService,
    IssuedCredential,
)

__all__ = [
    "IssuanceService",
    "IssuedCredential",
    "IssuanceError",
    "CredentialConflictError",
    "IssueResponse",
]
