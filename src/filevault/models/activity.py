"""ActivityRecord model — append-only audit trail entries."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class ActivityRecordBase(SQLModel):
    """Base fields for an audit record. Subclass with ``table=True`` for a concrete table.

    ``id`` is an autoincrement integer so records appended within the same
    clock tick still have a stable newest-first order.
    """

    id: int | None = Field(default=None, primary_key=True)
    actor_user_id: str = Field(index=True)
    action: str = Field(index=True)
    details: str = Field(default="")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
        index=True,
    )


class ActivityRecord(ActivityRecordBase, table=True):
    """Default activity table — ``vault_activity``."""

    __tablename__ = "vault_activity"
    __table_args__ = {"sqlite_autoincrement": True}
