"""
Credential document and identifier helpers shared by issuance and verification.
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4


class CredentialFormatError(ValueError):
    """Raised when a request body is not a usable credential document."""


def require_document(payload: Any) -> dict[str, Any]:
    """
    Return *payload* if it is a structured credential document.

    Only JSON objects qualify. Strings, numbers, arrays and ``null`` are
    rejected before any storage access happens.
    """
    if not isinstance(payload, dict):
        raise CredentialFormatError("Invalid credential format")
    return payload


def normalize_credential_id(value: Any) -> str:
    """Validate a caller-supplied credential ID."""
    if not isinstance(value, str) or not value:
        raise CredentialFormatError("Credential ID must be a non-empty string")
    return value


def generate_credential_id() -> str:
    """Mint a random, globally unique credential ID."""
    return str(uuid4())
