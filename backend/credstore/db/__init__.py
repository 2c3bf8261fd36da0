"""Database package."""

from credstore.db.models import Base, CredentialRecord
from credstore.db.session import Storage, WorkerId, get_storage, get_worker_id
from credstore.db.storage import (
    CredentialAlreadyExistsError,
    CredentialStorage,
    StorageError,
    StorageUnavailableError,
)

__all__ = [
    "Storage",
    "WorkerId",
    "get_storage",
    "get_worker_id",
    "Base",
    "CredentialRecord",
    "CredentialStorage",
    "CredentialAlreadyExistsError",
    "StorageError",
    "StorageUnavailableError",
]
