"""
Durable credential storage on SQLite through SQLAlchemy's async engine.

Each service process constructs one ``CredentialStorage`` handle, owns it
for the lifetime of the application and closes it at shutdown. Uniqueness
of credential IDs is enforced by the table's primary key: ``save`` is an
insert-or-fail, so concurrent issuers racing on the same ID cannot both win
regardless of any ``exists`` check they ran beforehand.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from types import TracebackType
from typing import Any, Self

from sqlalchemy import event, select, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from credstore.core.config import Settings
from credstore.core.logging import get_logger
from credstore.db.models import Base, CredentialRecord

logger = get_logger(__name__)

# backend/data, shared by both services when DATA_DIR is not set
DEFAULT_DATA_DIR = Path(__file__).resolve().parents[2] / "data"


class StorageError(RuntimeError):
    """Raised when a storage operation fails mid-flight."""


class StorageUnavailableError(StorageError):
    """Raised when the backing store cannot be opened or created."""


class CredentialAlreadyExistsError(StorageError):
    """Raised when inserting a credential whose ID is already stored."""

    def __init__(self, credential_id: str) -> None:
        super().__init__(f"Credential {credential_id} already exists")
        self.credential_id = credential_id


def resolve_data_dir(preferred: Path | None = None) -> Path:
    """
    Pick the directory that will hold the database file.

    Tries the preferred directory (or ``backend/data``), then ``./data``
    under the working directory. Raises ``StorageUnavailableError`` when
    neither can be created and written to.
    """
    first = preferred.expanduser().resolve() if preferred is not None else DEFAULT_DATA_DIR
    for candidate in (first, Path.cwd() / "data"):
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("data_dir_unavailable", data_dir=str(candidate), error=str(exc))
            continue
        if not os.access(candidate, os.W_OK):
            logger.warning("data_dir_not_writable", data_dir=str(candidate))
            continue
        return candidate
    raise StorageUnavailableError("No writable data directory for the credential database")


def sqlite_url(path: Path) -> str:
    """Build an aiosqlite URL for a database file."""
    return f"sqlite+aiosqlite:///{path}"


def _configure_sqlite_connection(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=FULL")
    cursor.close()


class CredentialStorage:
    """
    Handle on the ``credentials`` table.

    Usable as an async context manager::

        async with CredentialStorage.from_settings(settings) as storage:
            await storage.save("cred-1", {...})

    Every operation initializes the handle on first use, so calling
    ``init()`` up front is optional; doing so surfaces an unusable store
    before any traffic is served.
    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        data_dir: Path | None = None,
        database_filename: str = "credentials.db",
        busy_timeout: float = 5.0,
        echo: bool = False,
    ) -> None:
        self._database_url = database_url
        self._data_dir = data_dir
        self._database_filename = database_filename
        self._busy_timeout = busy_timeout
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()
        self.location: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialStorage:
        return cls(
            settings.database_url,
            data_dir=settings.data_dir,
            database_filename=settings.database_filename,
            busy_timeout=settings.database_busy_timeout,
            echo=settings.debug,
        )

    @property
    def initialized(self) -> bool:
        return self._session_factory is not None

    async def __aenter__(self) -> Self:
        await self.init()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Open the store and ensure the schema exists. Idempotent."""
        async with self._init_lock:
            if self._engine is not None:
                return

            url = self._database_url
            if url is None:
                data_dir = resolve_data_dir(self._data_dir)
                url = sqlite_url(data_dir / self._database_filename)
                logger.info("storage_data_dir", data_dir=str(data_dir))

            try:
                engine = self._create_engine(url)
            except ArgumentError as exc:
                raise StorageUnavailableError(f"Invalid database URL: {exc}") from exc

            location = engine.url.render_as_string(hide_password=True)
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except (SQLAlchemyError, OSError) as exc:
                await engine.dispose()
                logger.error("storage_init_failed", location=location, error=str(exc))
                raise StorageUnavailableError(f"Cannot open credential store at {location}") from exc

            self._engine = engine
            self._session_factory = async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
            self.location = location
            logger.info("storage_initialized", location=location)

    def _create_engine(self, url: str) -> AsyncEngine:
        is_sqlite = make_url(url).get_backend_name() == "sqlite"
        connect_args: dict[str, Any] = {"timeout": self._busy_timeout} if is_sqlite else {}
        engine = create_async_engine(
            url,
            connect_args=connect_args,
            pool_pre_ping=True,
            echo=self._echo,
        )
        if is_sqlite:
            event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
        return engine

    async def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        async with self._init_lock:
            if self._engine is not None:
                await self._engine.dispose()
                logger.info("storage_closed", location=self.location)
            self._engine = None
            self._session_factory = None

    async def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            await self.init()
        assert self._session_factory is not None
        return self._session_factory

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        """Round-trip a trivial query; raises ``StorageError`` on failure."""
        factory = await self._sessions()
        try:
            async with factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StorageError("Credential store is not responding") from exc

    async def exists(self, credential_id: str) -> bool:
        """Return whether a credential with this ID is stored."""
        factory = await self._sessions()
        try:
            async with factory() as session:
                result = await session.execute(
                    select(CredentialRecord.id).where(CredentialRecord.id == credential_id)
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as exc:
            logger.error("credential_exists_failed", credential_id=credential_id, error=str(exc))
            raise StorageError(f"Failed to check credential {credential_id}") from exc

    async def save(self, credential_id: str, data: dict[str, Any]) -> None:
        """
        Insert a new credential row in its own transaction.

        Raises ``CredentialAlreadyExistsError`` if the primary key is taken;
        the existing row is left untouched.
        """
        factory = await self._sessions()
        record = CredentialRecord(id=credential_id, data=json.dumps(data))
        try:
            async with factory() as session, session.begin():
                session.add(record)
        except IntegrityError as exc:
            logger.info("credential_insert_conflict", credential_id=credential_id)
            raise CredentialAlreadyExistsError(credential_id) from exc
        except SQLAlchemyError as exc:
            logger.error("credential_save_failed", credential_id=credential_id, error=str(exc))
            raise StorageError(f"Failed to save credential {credential_id}") from exc

    async def get(self, credential_id: str) -> dict[str, Any] | None:
        """Return the stored document for ``credential_id``, or ``None``."""
        factory = await self._sessions()
        try:
            async with factory() as session:
                result = await session.execute(
                    select(CredentialRecord.data).where(CredentialRecord.id == credential_id)
                )
                raw = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("credential_get_failed", credential_id=credential_id, error=str(exc))
            raise StorageError(f"Failed to get credential {credential_id}") from exc

        if raw is None:
            logger.info("credential_lookup_miss", credential_id=credential_id, location=self.location)
            return None
        logger.info("credential_lookup_hit", credential_id=credential_id, location=self.location)
        document: dict[str, Any] = json.loads(raw)
        return document

    async def list_ids(self) -> list[str]:
        """All stored credential IDs, oldest first. Diagnostic use only."""
        factory = await self._sessions()
        try:
            async with factory() as session:
                result = await session.execute(
                    select(CredentialRecord.id).order_by(
                        CredentialRecord.created_at, CredentialRecord.id
                    )
                )
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("credential_list_failed", error=str(exc))
            raise StorageError("Failed to list credentials") from exc
