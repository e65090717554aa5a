"""FileTreeService — FileNode lifecycle and the acyclic-tree invariant.

Owns node creation, lookup, reparenting and the cascading subtree
delete. Grants are cleared through the injected ``PermissionStore`` and
leaf content is released through the injected ``ContentSink``; neither
is touched directly.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete as sa_delete
from sqlmodel import select

from .content import NullContentSink
from .exceptions import InvalidStateError, NotFoundError, ValidationError
from .utils import utc_now, validate_node_name

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.files import FileNodeBase

    from .protocol import ContentSink, IdentityStore, PermissionStore

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"name", "parent_id", "content_ref", "size_bytes", "mime_type"})


class FileTreeService:
    """Manages the per-user file trees.

    Every method takes the caller's session and only flushes; the caller
    commits or rolls back, which is what makes a cascade all-or-nothing.
    """

    def __init__(
        self,
        file_model: type[FileNodeBase],
        identity: IdentityStore,
        permissions: PermissionStore,
        content_sink: ContentSink | None = None,
    ) -> None:
        self._file_model = file_model
        self._identity = identity
        self._permissions = permissions
        self._content_sink: ContentSink = content_sink or NullContentSink()

    @property
    def file_model(self) -> type[FileNodeBase]:
        return self._file_model

    @property
    def content_sink(self) -> ContentSink:
        return self._content_sink

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

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
    ) -> FileNodeBase:
        """Create a container or leaf under *parent_id* (None for top level).

        Raises ``ValidationError`` for a bad name or negative size,
        ``NotFoundError`` if the owner or parent does not resolve, and
        ``InvalidStateError`` if the parent is a leaf.
        """
        name = validate_node_name(name)
        await self._identity.get(session, owner_id)

        if parent_id is not None:
            parent = await self.find(session, parent_id)
            if parent is None:
                raise NotFoundError(f"Parent not found: {parent_id}", parent_id=parent_id)
            if not parent.is_container:
                raise InvalidStateError(
                    f"Parent is not a container: {parent_id}", parent_id=parent_id
                )

        if is_container:
            content_ref, size_bytes = "", 0
        elif size_bytes < 0:
            raise ValidationError("Size cannot be negative", size_bytes=size_bytes)

        now = utc_now()
        node = self._file_model(
            name=name,
            owner_id=owner_id,
            parent_id=parent_id,
            is_container=is_container,
            content_ref=content_ref or "",
            size_bytes=size_bytes,
            mime_type=mime_type,
            created_at=now,
            updated_at=now,
        )
        session.add(node)
        await session.flush()
        return node

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def find(self, session: AsyncSession, node_id: str) -> FileNodeBase | None:
        """Get a node by id, or None."""
        return await session.get(self._file_model, node_id)

    async def get(
        self, session: AsyncSession, node_id: str, *, for_update: bool = False
    ) -> FileNodeBase:
        """Get a node by id. Raises ``NotFoundError`` if absent.

        With *for_update* the row is locked (``SELECT ... FOR UPDATE``) on
        dialects that support it, serializing concurrent mutations.
        """
        if for_update:
            model = self._file_model
            result = await session.execute(
                select(model)
                .where(model.id == node_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            node = result.scalar_one_or_none()
        else:
            node = await self.find(session, node_id)
        if node is None:
            raise NotFoundError(f"File not found: {node_id}", file_id=node_id)
        return node

    async def list_children(
        self, session: AsyncSession, parent_id: str | None
    ) -> list[FileNodeBase]:
        """Direct children of *parent_id*; None lists top-level nodes. Containers first."""
        model = self._file_model
        condition = model.parent_id.is_(None) if parent_id is None else model.parent_id == parent_id  # type: ignore[union-attr]
        result = await session.execute(
            select(model)
            .where(condition)
            .order_by(model.is_container.desc(), model.name, model.id)  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def list_by_owner(self, session: AsyncSession, owner_id: str) -> list[FileNodeBase]:
        """Every node owned by *owner_id*."""
        model = self._file_model
        result = await session.execute(
            select(model).where(model.owner_id == owner_id).order_by(model.created_at, model.id)
        )
        return list(result.scalars().all())

    async def root_for(self, session: AsyncSession, owner_id: str) -> FileNodeBase | None:
        """The owner's top-level container, provisioned at registration."""
        model = self._file_model
        result = await session.execute(
            select(model)
            .where(
                model.owner_id == owner_id,
                model.parent_id.is_(None),  # type: ignore[union-attr]
                model.is_container.is_(True),  # type: ignore[attr-defined]
            )
            .order_by(model.created_at, model.id)
        )
        return result.scalars().first()

    async def ancestors(self, session: AsyncSession, node_id: str) -> list[str]:
        """Ids from *node_id* up to its top-level node, inclusive."""
        chain: list[str] = []
        current: str | None = node_id
        while current is not None:
            if current in chain:
                raise InvalidStateError(f"Cycle detected at {current}", file_id=current)
            node = await self.find(session, current)
            if node is None:
                raise NotFoundError(f"File not found: {current}", file_id=current)
            chain.append(current)
            current = node.parent_id
        return chain

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update(self, session: AsyncSession, node_id: str, **patch: Any) -> FileNodeBase:
        """Apply *patch* and refresh ``updated_at``.

        Accepts ``name``, ``parent_id``, ``content_ref``, ``size_bytes``
        and ``mime_type``. Reparenting rejects the node itself or any
        descendant as the new parent.
        """
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown node fields: {sorted(unknown)}", file_id=node_id)

        node = await self.get(session, node_id, for_update=True)

        if "name" in patch:
            node.name = validate_node_name(patch["name"])

        if "parent_id" in patch and patch["parent_id"] != node.parent_id:
            await self._check_reparent(session, node, patch["parent_id"])
            node.parent_id = patch["parent_id"]

        content_fields = {"content_ref", "size_bytes"} & set(patch)
        if content_fields and node.is_container:
            raise ValidationError(
                "Containers do not hold content", file_id=node_id, fields=sorted(content_fields)
            )
        if "content_ref" in patch:
            node.content_ref = patch["content_ref"] or ""
        if "size_bytes" in patch:
            if patch["size_bytes"] < 0:
                raise ValidationError("Size cannot be negative", size_bytes=patch["size_bytes"])
            node.size_bytes = patch["size_bytes"]
        if "mime_type" in patch:
            node.mime_type = patch["mime_type"]

        node.updated_at = utc_now()
        session.add(node)
        await session.flush()
        return node

    async def _check_reparent(
        self, session: AsyncSession, node: FileNodeBase, new_parent_id: str | None
    ) -> None:
        if new_parent_id is None:
            return
        if new_parent_id == node.id:
            raise ValidationError(
                "A node cannot be its own parent", file_id=node.id, parent_id=new_parent_id
            )
        parent = await self.find(session, new_parent_id)
        if parent is None:
            raise NotFoundError(f"Parent not found: {new_parent_id}", parent_id=new_parent_id)
        if not parent.is_container:
            raise InvalidStateError(
                f"Parent is not a container: {new_parent_id}", parent_id=new_parent_id
            )
        if node.id in await self.ancestors(session, new_parent_id):
            raise ValidationError(
                "Cannot move a container into its own subtree",
                file_id=node.id,
                parent_id=new_parent_id,
            )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def postorder(self, session: AsyncSession, node_id: str) -> list[FileNodeBase]:
        """Return the subtree rooted at *node_id*, children before parents.

        Uses an explicit stack rather than recursion so pathological
        depth cannot exhaust the call stack. The root is always last.
        Child rows are locked as they are read, so a concurrent insert
        under any visited container waits for the caller's transaction.
        """
        model = self._file_model
        root = await self.get(session, node_id)
        stack: list[FileNodeBase] = [root]
        seen: set[str] = set()
        preorder: list[FileNodeBase] = []

        while stack:
            node = stack.pop()
            if node.id in seen:
                raise InvalidStateError(f"Cycle detected at {node.id}", file_id=node.id)
            seen.add(node.id)
            preorder.append(node)
            if node.is_container:
                result = await session.execute(
                    select(model)
                    .where(model.parent_id == node.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                stack.extend(result.scalars().all())

        # Reversed "parent, then children" preorder puts every child ahead of its parent
        preorder.reverse()
        return preorder

    async def delete_subtree(self, session: AsyncSession, node_id: str) -> bool:
        """Physically delete *node_id* and everything beneath it.

        Visits nodes in post-order. Each leaf's content is released
        (failures logged, never fatal), then every grant on the node is
        removed, then the node row itself. Returns False if *node_id*
        does not exist.

        Runs entirely inside the caller's transaction: a backend failure
        propagates and the caller's rollback restores every row.
        """
        if await self.find(session, node_id) is None:
            return False

        model = self._file_model
        visited = await self.postorder(session, node_id)
        for node in visited:
            current_id = node.id
            if not node.is_container and node.content_ref:
                await self._release(node)
            await self._permissions.delete_all_for_file(session, current_id)
            result = await session.execute(sa_delete(model).where(model.id == current_id))
            if result.rowcount == 0:  # type: ignore[union-attr]
                raise InvalidStateError(
                    f"Node vanished mid-cascade: {current_id}", file_id=current_id
                )

        logger.debug("Deleted subtree %s (%d nodes)", node_id, len(visited))
        return True

    async def _release(self, node: FileNodeBase) -> None:
        try:
            await self._content_sink.release(node.content_ref)
        except Exception:
            logger.warning(
                "Content sink failed to release %r for node %s",
                node.content_ref,
                node.id,
                exc_info=True,
            )
