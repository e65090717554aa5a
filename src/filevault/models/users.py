"""User model — account records for the identity store.

Provides ``UserBase`` (non-table) and ``User`` (concrete table).
Subclass ``UserBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    """Base fields for a user account. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    username: str = Field(default="")
    username_key: str = Field(index=True, unique=True)
    """Lower-cased username; the unique index makes usernames case-insensitive."""
    password_hash: str = Field(default="")
    display_name: str = Field(default="")
    role: str = Field(default="viewer")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class User(UserBase, table=True):
    """Default user table — ``vault_users``."""

    __tablename__ = "vault_users"
