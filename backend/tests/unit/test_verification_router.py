"""
Unit tests for the verification HTTP routes.
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from credstore.core.config import ServiceRole
from credstore.db.storage import CredentialStorage, StorageError
from credstore.modules.issuance.service import IssuanceService

VERIFIER_WORKER_ID = "verifier-test0001"


@pytest.mark.asyncio
async def test_verify_known_credential(
    verification_client: AsyncClient, storage: CredentialStorage
) -> None:
    issued = await IssuanceService(storage, "worker-abc").issue({"name": "Jane"})

    response = await verification_client.post("/verify", json={"id": issued.credential_id})

    assert response.status_code == 200
    assert response.json() == {
        "status": "valid",
        "worker": "worker-abc",
        "timestamp": issued.timestamp,
        "credential": {"name": "Jane", "id": issued.credential_id},
    }


@pytest.mark.asyncio
async def test_verify_unknown_credential(verification_client: AsyncClient) -> None:
    response = await verification_client.post("/verify", json={"id": "never-issued"})

    assert response.status_code == 404
    assert response.json() == {"status": "invalid", "message": "Credential not found"}


@pytest.mark.asyncio
async def test_verify_requires_id(verification_client: AsyncClient) -> None:
    response = await verification_client.post("/verify", json={"name": "Jane"})

    assert response.status_code == 400
    assert response.json() == {"detail": "Credential ID is required"}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["X", None, ["X"]])
async def test_verify_rejects_non_object_body(
    verification_client: AsyncClient, body: object
) -> None:
    response = await verification_client.post("/verify", json=body)

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid credential format"}


@pytest.mark.asyncio
async def test_verify_does_not_create_records(
    verification_client: AsyncClient, storage: CredentialStorage
) -> None:
    await verification_client.post("/verify", json={"id": "ghost"})
    assert await storage.list_ids() == []


@pytest.mark.asyncio
async def test_storage_failure_is_internal_error(
    make_app: Callable[[ServiceRole, CredentialStorage, str], FastAPI],
) -> None:
    broken = AsyncMock(spec=CredentialStorage)
    broken.get.side_effect = StorageError("disk I/O error")
    app = make_app(ServiceRole.VERIFICATION, broken, VERIFIER_WORKER_ID)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/verify", json={"id": "X"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


@pytest.mark.asyncio
async def test_verification_service_has_no_issue_route(verification_client: AsyncClient) -> None:
    response = await verification_client.post("/issue", json={"name": "Jane"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_debug_echo(verification_client: AsyncClient) -> None:
    response = await verification_client.post(
        "/debug/echo",
        json={"ping": True},
        headers={"X-Client-Check": "frontend"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["received"] is True
    assert body["body"] == {"ping": True}
    assert body["headers"]["x-client-check"] == "frontend"


@pytest.mark.asyncio
async def test_health_reports_verifier_worker(verification_client: AsyncClient) -> None:
    response = await verification_client.get("/health")

    assert response.status_code == 200
    assert response.json()["worker"] == VERIFIER_WORKER_ID
