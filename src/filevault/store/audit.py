"""AuditService — append-only activity log."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlmodel import select

from .types import ActivityAction
from .utils import utc_now

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.activity import ActivityRecordBase

    from .protocol import IdentityStore

logger = logging.getLogger(__name__)


class AuditService:
    """Appends and lists activity records, newest first.

    Timestamps are assigned here, never by the caller. Records are never
    updated; ``purge_actor`` exists only for the user-deletion cascade
    when activity purging is configured.
    """

    def __init__(self, activity_model: type[ActivityRecordBase], identity: IdentityStore) -> None:
        self._activity_model = activity_model
        self._identity = identity

    async def append(
        self,
        session: AsyncSession,
        actor_user_id: str,
        action: ActivityAction | str,
        details: str = "",
    ) -> ActivityRecordBase:
        """Append a record. Raises ``NotFoundError`` if the actor does not resolve."""
        await self._identity.get(session, actor_user_id)
        record = self._activity_model(
            actor_user_id=actor_user_id,
            action=ActivityAction(action).value,
            details=details or "",
            timestamp=utc_now(),
        )
        session.add(record)
        await session.flush()
        logger.debug("Audit %s by %s: %s", record.action, actor_user_id, details)
        return record

    async def list_all(
        self, session: AsyncSession, limit: int | None = None
    ) -> list[ActivityRecordBase]:
        """Every record, newest first."""
        model = self._activity_model
        query = select(model).order_by(model.timestamp.desc(), model.id.desc())  # type: ignore[union-attr]
        if limit is not None:
            query = query.limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def list_for_user(
        self, session: AsyncSession, actor_user_id: str, limit: int | None = None
    ) -> list[ActivityRecordBase]:
        """Records whose actor is *actor_user_id*, newest first."""
        model = self._activity_model
        query = (
            select(model)
            .where(model.actor_user_id == actor_user_id)
            .order_by(model.timestamp.desc(), model.id.desc())  # type: ignore[union-attr]
        )
        if limit is not None:
            query = query.limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def purge_actor(self, session: AsyncSession, actor_user_id: str) -> int:
        """Delete every record by *actor_user_id*. Returns the number removed."""
        model = self._activity_model
        result = await session.execute(
            sa_delete(model).where(model.actor_user_id == actor_user_id)
        )
        return result.rowcount  # type: ignore[union-attr]
