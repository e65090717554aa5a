"""Store protocols — runtime-checkable interfaces.

The access control engine and the facades depend only on these
protocols, so a backend can swap any store for its own implementation.
The bundled services are built on SQLAlchemy and take an
``AsyncSession`` per call; the caller owns the transaction boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.activity import ActivityRecordBase
    from filevault.models.files import FileNodeBase
    from filevault.models.grants import PermissionGrantBase
    from filevault.models.users import UserBase

    from .types import GrantFlags


@runtime_checkable
class ContentSink(Protocol):
    """External byte storage keyed by a content reference.

    The core only ever asks the sink to release content during subtree
    deletion. Releases are best-effort: failures are logged by the
    caller and never abort a cascade.
    """

    async def release(self, content_ref: str) -> None: ...


@runtime_checkable
class IdentityStore(Protocol):
    """User records with case-insensitive unique usernames."""

    async def create(
        self,
        session: AsyncSession,
        username: str,
        password_hash: str,
        display_name: str = "",
        role: str = "viewer",
    ) -> UserBase: ...

    async def get(self, session: AsyncSession, user_id: str) -> UserBase: ...

    async def find(self, session: AsyncSession, user_id: str) -> UserBase | None: ...

    async def get_by_username(self, session: AsyncSession, username: str) -> UserBase | None: ...

    async def update(self, session: AsyncSession, user_id: str, **patch: Any) -> UserBase: ...

    async def delete(self, session: AsyncSession, user_id: str) -> None: ...

    async def list_all(self, session: AsyncSession) -> list[UserBase]: ...


@runtime_checkable
class FileTreeStore(Protocol):
    """FileNode lifecycle and the acyclic-tree invariant."""

    async def create_node(
        self,
        session: AsyncSession,
        name: str,
        owner_id: str,
        parent_id: str | None,
        is_container: bool,
        content_ref: str | None = None,
        size_bytes: int = 0,
        mime_type: str | None = None,
    ) -> FileNodeBase: ...

    async def get(
        self, session: AsyncSession, node_id: str, *, for_update: bool = False
    ) -> FileNodeBase: ...

    async def find(self, session: AsyncSession, node_id: str) -> FileNodeBase | None: ...

    async def list_children(
        self, session: AsyncSession, parent_id: str | None
    ) -> list[FileNodeBase]: ...

    async def list_by_owner(self, session: AsyncSession, owner_id: str) -> list[FileNodeBase]: ...

    async def update(self, session: AsyncSession, node_id: str, **patch: Any) -> FileNodeBase: ...

    async def delete_subtree(self, session: AsyncSession, node_id: str) -> bool: ...


@runtime_checkable
class PermissionStore(Protocol):
    """PermissionGrant lifecycle, one grant per (file, grantee) pair."""

    async def list_for_file(
        self, session: AsyncSession, file_id: str
    ) -> list[PermissionGrantBase]: ...

    async def get(
        self, session: AsyncSession, file_id: str, user_id: str
    ) -> PermissionGrantBase | None: ...

    async def upsert(
        self,
        session: AsyncSession,
        file_id: str,
        user_id: str,
        flags: GrantFlags,
        granted_by: str = "",
    ) -> PermissionGrantBase | None: ...

    async def revoke(self, session: AsyncSession, file_id: str, user_id: str) -> bool: ...

    async def delete_all_for_file(self, session: AsyncSession, file_id: str) -> int: ...

    async def delete_all_for_user(self, session: AsyncSession, user_id: str) -> int: ...

    async def list_shared_with(self, session: AsyncSession, user_id: str) -> list[FileNodeBase]: ...


@runtime_checkable
class AuditStore(Protocol):
    """Append-only activity log."""

    async def append(
        self,
        session: AsyncSession,
        actor_user_id: str,
        action: str,
        details: str = "",
    ) -> ActivityRecordBase: ...

    async def list_all(
        self, session: AsyncSession, limit: int | None = None
    ) -> list[ActivityRecordBase]: ...

    async def list_for_user(
        self, session: AsyncSession, actor_user_id: str, limit: int | None = None
    ) -> list[ActivityRecordBase]: ...
