"""Pydantic schemas for credential verification."""

from __future__ import annotations

from enum import Enum as PyEnum
from typing import Any

from pydantic import BaseModel


class VerificationStatus(str, PyEnum):
    """Outcome of a verification lookup."""

    VALID = "valid"
    INVALID = "invalid"


class VerificationResponse(BaseModel):
    """Response body for ``POST /verify``.

    A valid credential carries the issuing worker, the issuance timestamp and
    the stored document; an unknown one carries only ``status`` and
    ``message``.
    """

    status: VerificationStatus
    message: str | None = None
    worker: str | None = None
    timestamp: str | None = None
    credential: dict[str, Any] | None = None
