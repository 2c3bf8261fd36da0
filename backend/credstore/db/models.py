"""
SQLAlchemy ORM models for the credential store.
A single append-only table keyed by the credential ID.
"""

from datetime import datetime

from sqlalchemy import DateTime, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class CredentialRecord(Base):
    """
    An issued credential.

    ``data`` holds the JSON document ``{"credential", "worker", "timestamp"}``.
    Rows are inserted once and never updated or deleted.
    """

    __tablename__ = "credentials"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.current_timestamp(),
    )
