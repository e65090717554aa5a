"""FileNode model — containers and leaves of the per-user file tree.

Provides ``FileNodeBase`` (non-table) and ``FileNode`` (concrete table).
``parent_id`` is ``None`` for top-level nodes; every user owns exactly one
top-level container (their root) created at registration.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FileNodeBase(SQLModel):
    """Base fields for a file tree node. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(default="")
    content_ref: str = Field(default="")
    size_bytes: int = Field(default=0)
    mime_type: str | None = Field(default=None)
    owner_id: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    is_container: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FileNode(FileNodeBase, table=True):
    """Default file node table — ``vault_file_nodes``."""

    __tablename__ = "vault_file_nodes"
