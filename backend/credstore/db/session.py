"""
Request-scoped access to the application's storage handle.

The handle is created and closed by the application lifespan and kept on
``app.state``; routes receive it through FastAPI dependency injection.
"""

from typing import Annotated

from fastapi import Depends, Request

from credstore.db.storage import CredentialStorage


def get_storage(request: Request) -> CredentialStorage:
    """Dependency that provides the application's credential storage."""
    storage: CredentialStorage | None = getattr(request.app.state, "storage", None)
    if storage is None:
        raise RuntimeError("Storage not initialized. Is the application lifespan running?")
    return storage


def get_worker_id(request: Request) -> str:
    """Dependency that provides this process's worker identity."""
    worker_id: str = request.app.state.worker_id
    return worker_id


# Type aliases for dependency injection
Storage = Annotated[CredentialStorage, Depends(get_storage)]
WorkerId = Annotated[str, Depends(get_worker_id)]
