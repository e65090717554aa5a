"""AccessControlEngine — capability resolution for actors on nodes.

Resolution is an ordered chain of named predicates; the first that
matches allows the request:

1. ``admin``: the actor's role is admin.
2. ``owner``: the actor owns the node.
3. ``grant``: a grant for ``(node, actor)`` has the capability's flag set.

Anything else is denied. The engine only reads; it never writes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import PermissionDeniedError
from .types import AccessExplanation, Actor, Capability, Decision

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.files import FileNodeBase

    from .protocol import FileTreeStore, PermissionStore

    Rule = tuple[str, Callable[[AsyncSession, Actor, FileNodeBase, Capability], Awaitable[bool]]]

logger = logging.getLogger(__name__)


class AccessControlEngine:
    """Decides whether an actor may exercise a capability on a node."""

    def __init__(self, tree: FileTreeStore, permissions: PermissionStore) -> None:
        self._tree = tree
        self._permissions = permissions
        self.rules: tuple[Rule, ...] = (
            ("admin", self._is_admin),
            ("owner", self._is_owner),
            ("grant", self._grant_allows),
        )

    # ------------------------------------------------------------------
    # Predicates, in resolution order
    # ------------------------------------------------------------------

    @staticmethod
    async def _is_admin(
        session: AsyncSession, actor: Actor, node: FileNodeBase, capability: Capability
    ) -> bool:
        return actor.is_admin

    @staticmethod
    async def _is_owner(
        session: AsyncSession, actor: Actor, node: FileNodeBase, capability: Capability
    ) -> bool:
        return node.owner_id == actor.user_id

    async def _grant_allows(
        self, session: AsyncSession, actor: Actor, node: FileNodeBase, capability: Capability
    ) -> bool:
        grant = await self._permissions.get(session, node.id, actor.user_id)
        return grant is not None and bool(getattr(grant, capability.flag))

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def explain_node(
        self,
        session: AsyncSession,
        actor: Actor,
        node: FileNodeBase,
        capability: Capability | str,
    ) -> AccessExplanation:
        """Resolve *capability* on an already-loaded *node*."""
        capability = Capability(capability)
        for name, check in self.rules:
            if await check(session, actor, node, capability):
                return AccessExplanation(Decision.ALLOW, name)
        return AccessExplanation(Decision.DENY)

    async def explain(
        self,
        session: AsyncSession,
        actor: Actor,
        file_id: str,
        capability: Capability | str,
    ) -> AccessExplanation:
        """Return the decision and the rule that produced it.

        Raises ``NotFoundError`` if *file_id* does not resolve.
        """
        node = await self._tree.get(session, file_id)
        return await self.explain_node(session, actor, node, capability)

    async def authorize(
        self,
        session: AsyncSession,
        actor: Actor,
        file_id: str,
        capability: Capability | str,
    ) -> Decision:
        """Return ``Decision.ALLOW`` or ``Decision.DENY`` for the request."""
        return (await self.explain(session, actor, file_id, capability)).decision

    async def require(
        self,
        session: AsyncSession,
        actor: Actor,
        file_id: str,
        capability: Capability | str,
        *,
        for_update: bool = False,
    ) -> FileNodeBase:
        """Return the node if allowed, else raise ``PermissionDeniedError``."""
        capability = Capability(capability)
        node = await self._tree.get(session, file_id, for_update=for_update)
        explanation = await self.explain_node(session, actor, node, capability)
        if not explanation.decision.allowed:
            logger.debug(
                "Denied %s on %s for %s", capability.value, file_id, actor.user_id
            )
            raise PermissionDeniedError(
                f"Access denied: {actor.user_id!r} lacks {capability.value!r} on {file_id!r}",
                actor_id=actor.user_id,
                file_id=file_id,
                capability=capability.value,
            )
        return node

    async def filter_allowed(
        self,
        session: AsyncSession,
        actor: Actor,
        nodes: Sequence[FileNodeBase],
        capability: Capability | str = Capability.READ,
    ) -> list[FileNodeBase]:
        """Keep only the nodes on which *actor* holds *capability*."""
        allowed: list[FileNodeBase] = []
        for node in nodes:
            if (await self.explain_node(session, actor, node, capability)).decision.allowed:
                allowed.append(node)
        return allowed

    async def shared_with(self, session: AsyncSession, user_id: str) -> list[FileNodeBase]:
        """Files shared with *user_id* by other owners; recomputed per call."""
        return await self._permissions.list_shared_with(session, user_id)
