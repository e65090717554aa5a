"""PermissionService — grant CRUD and the derived shared-with-me query.

Stateless service that receives the grant and file models at construction
and a session at call time.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from .dialect import session_dialect, supports_upsert, upsert_row
from .exceptions import ConflictError, NotFoundError
from .utils import utc_now

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.files import FileNodeBase
    from filevault.models.grants import PermissionGrantBase

    from .types import GrantFlags

logger = logging.getLogger(__name__)


class PermissionService:
    """Manages per-node grants to non-owner users.

    Constructor receives the concrete grant and file models so callers
    can use custom SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        grant_model: type[PermissionGrantBase],
        file_model: type[FileNodeBase],
    ) -> None:
        self._grant_model = grant_model
        self._file_model = file_model

    @property
    def grant_model(self) -> type[PermissionGrantBase]:
        return self._grant_model

    async def get(
        self, session: AsyncSession, file_id: str, user_id: str
    ) -> PermissionGrantBase | None:
        """Return the grant for ``(file_id, user_id)`` or None."""
        model = self._grant_model
        result = await session.execute(
            select(model)
            .where(model.file_id == file_id, model.grantee_user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_file(
        self, session: AsyncSession, file_id: str
    ) -> list[PermissionGrantBase]:
        """List all grants scoped to *file_id*, oldest first."""
        model = self._grant_model
        result = await session.execute(
            select(model)
            .where(model.file_id == file_id)
            .order_by(model.created_at, model.id)
        )
        return list(result.scalars().all())

    async def list_for_user(
        self, session: AsyncSession, user_id: str
    ) -> list[PermissionGrantBase]:
        """List all grants naming *user_id* as grantee."""
        model = self._grant_model
        result = await session.execute(
            select(model)
            .where(model.grantee_user_id == user_id)
            .order_by(model.created_at, model.id)
        )
        return list(result.scalars().all())

    async def upsert(
        self,
        session: AsyncSession,
        file_id: str,
        user_id: str,
        flags: GrantFlags,
        granted_by: str = "",
    ) -> PermissionGrantBase | None:
        """Create or merge the grant for ``(file_id, user_id)``.

        New grants take unsupplied flags from the read-only defaults;
        existing grants change only the supplied flags. On SQLite and
        PostgreSQL this is one ``INSERT ... ON CONFLICT`` statement, so
        the whole flag set of a call lands atomically.

        Returns None without writing when *user_id* owns the file, since
        owners already hold every capability.
        """
        node = await session.get(self._file_model, file_id)
        if node is None:
            raise NotFoundError(f"File not found: {file_id}", file_id=file_id)
        if node.owner_id == user_id:
            logger.debug("Skipping grant on %s: %s is the owner", file_id, user_id)
            return None

        dialect = session_dialect(session)
        if supports_upsert(dialect):
            await self._upsert_statement(session, dialect, file_id, user_id, flags, granted_by)
        else:
            await self._upsert_fallback(session, file_id, user_id, flags, granted_by)

        grant = await self.get(session, file_id, user_id)
        assert grant is not None
        return grant

    async def _upsert_statement(
        self,
        session: AsyncSession,
        dialect: str,
        file_id: str,
        user_id: str,
        flags: GrantFlags,
        granted_by: str,
    ) -> None:
        now = utc_now()
        values = {
            "id": str(uuid.uuid4()),
            "file_id": file_id,
            "grantee_user_id": user_id,
            **flags.resolved(),
            "granted_by": granted_by,
            "created_at": now,
            "updated_at": now,
        }
        update_keys = [*flags.supplied(), "updated_at"]
        if granted_by:
            update_keys.append("granted_by")
        await upsert_row(
            session,
            dialect,
            self._grant_model,
            values,
            conflict_keys=["file_id", "grantee_user_id"],
            update_keys=update_keys,
        )

    async def _upsert_fallback(
        self,
        session: AsyncSession,
        file_id: str,
        user_id: str,
        flags: GrantFlags,
        granted_by: str,
    ) -> None:
        grant = await self.get(session, file_id, user_id)
        if grant is None:
            grant = self._grant_model(
                file_id=file_id,
                grantee_user_id=user_id,
                granted_by=granted_by,
                **flags.resolved(),
            )
        else:
            for name, value in flags.supplied().items():
                setattr(grant, name, value)
            if granted_by:
                grant.granted_by = granted_by
            grant.updated_at = utc_now()
        session.add(grant)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(
                "Concurrent grant creation for the same file and user",
                file_id=file_id,
                user_id=user_id,
            ) from e

    async def revoke(self, session: AsyncSession, file_id: str, user_id: str) -> bool:
        """Remove the grant for ``(file_id, user_id)``. Returns True if found."""
        model = self._grant_model
        result = await session.execute(
            sa_delete(model).where(
                model.file_id == file_id,
                model.grantee_user_id == user_id,
            )
        )
        return result.rowcount > 0  # type: ignore[union-attr]

    async def delete_all_for_file(self, session: AsyncSession, file_id: str) -> int:
        """Remove every grant scoped to *file_id*. Returns the number removed."""
        model = self._grant_model
        result = await session.execute(sa_delete(model).where(model.file_id == file_id))
        return result.rowcount  # type: ignore[union-attr]

    async def delete_all_for_user(self, session: AsyncSession, user_id: str) -> int:
        """Remove every grant naming *user_id*. Returns the number removed."""
        model = self._grant_model
        result = await session.execute(
            sa_delete(model).where(model.grantee_user_id == user_id)
        )
        return result.rowcount  # type: ignore[union-attr]

    async def list_shared_with(
        self, session: AsyncSession, user_id: str
    ) -> list[FileNodeBase]:
        """Files carrying a grant that names *user_id*, excluding files they own.

        Derived on every call; nothing is cached because grants can be
        revoked at any time.
        """
        file_model = self._file_model
        grant_model = self._grant_model
        result = await session.execute(
            select(file_model)
            .join(grant_model, grant_model.file_id == file_model.id)
            .where(
                grant_model.grantee_user_id == user_id,
                file_model.owner_id != user_id,
            )
            .order_by(file_model.name, file_model.id)
        )
        return list(result.scalars().all())
