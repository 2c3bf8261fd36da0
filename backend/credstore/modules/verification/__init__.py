"""Credential verification: read-only lookup of issued credentials."""

from credstore.modules.verification.schemas import VerificationResponse, VerificationStatus
from credstore.modules.verification.service import VerificationResult, VerificationService

__all__ = [
    "VerificationService",
    "VerificationResult",
    "VerificationStatus",
    "VerificationResponse",
]
