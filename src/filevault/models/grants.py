"""PermissionGrant model — per-node capabilities granted to non-owners.

At most one grant exists per ``(file_id, grantee_user_id)`` pair; the
unique constraint is what the dialect-aware upsert conflicts on.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class PermissionGrantBase(SQLModel):
    """Base fields for a grant. Subclass with ``table=True`` for a concrete table.

    Concrete subclasses must declare a unique constraint on
    ``(file_id, grantee_user_id)``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    file_id: str = Field(index=True)
    grantee_user_id: str = Field(index=True)
    can_read: bool = Field(default=True)
    can_write: bool = Field(default=False)
    can_delete: bool = Field(default=False)
    can_share: bool = Field(default=False)
    granted_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class PermissionGrant(PermissionGrantBase, table=True):
    """Default grant table — ``vault_permission_grants``."""

    __tablename__ = "vault_permission_grants"
    __table_args__ = (
        UniqueConstraint("file_id", "grantee_user_id", name="uq_vault_grant_file_grantee"),
    )
