"""
Pytest fixtures for backend testing.
Provides temporary credential storage, per-role applications and HTTP clients.
"""

from collections.abc import AsyncGenerator, Callable, Iterator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from credstore.core.config import ServiceRole, get_settings
from credstore.db.session import get_storage
from credstore.db.storage import CredentialStorage
from credstore.main import create_application

ISSUER_WORKER_ID = "worker-test0001"
VERIFIER_WORKER_ID = "verifier-test0001"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Point every test at its own data directory with development defaults."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    for name in ("DATABASE_URL", "WORKER_ID", "SERVICE_ROLE", "PORT", "CSP_ENABLED"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def storage(tmp_path: Path) -> AsyncGenerator[CredentialStorage, None]:
    """An initialized storage handle on a throwaway SQLite file."""
    async with CredentialStorage(data_dir=tmp_path / "store") as store:
        yield store


def build_app(role: ServiceRole, storage: CredentialStorage, worker_id: str) -> FastAPI:
    """Create an application whose routes use ``storage`` instead of the lifespan handle."""
    app = create_application(role)
    app.state.worker_id = worker_id
    app.dependency_overrides[get_storage] = lambda: storage
    return app


@pytest.fixture
def make_app() -> Callable[[ServiceRole, CredentialStorage, str], FastAPI]:
    """Expose ``build_app`` to tests that need a custom storage handle."""
    return build_app


@pytest_asyncio.fixture
async def issuance_client(storage: CredentialStorage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the issuance service."""
    app = build_app(ServiceRole.ISSUANCE, storage, ISSUER_WORKER_ID)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def verification_client(storage: CredentialStorage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the verification service, sharing the issuer's storage."""
    app = build_app(ServiceRole.VERIFICATION, storage, VERIFIER_WORKER_ID)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
