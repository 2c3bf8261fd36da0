"""Pydantic schemas for credential issuance."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class IssueResponse(BaseModel):
    """Response body for a successful issuance."""

    message: str
    worker: str
    credential_id: str = Field(alias="credentialId")
    timestamp: str

    model_config = ConfigDict(populate_by_name=True)
