"""FileVaultAsync — primary async class wiring the stores into operations."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from filevault.config import VaultConfig
from filevault.models.activity import ActivityRecord
from filevault.models.files import FileNode
from filevault.models.grants import PermissionGrant
from filevault.models.users import User
from filevault.store.access import AccessControlEngine
from filevault.store.audit import AuditService
from filevault.store.database import VaultDatabase
from filevault.store.exceptions import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from filevault.store.grants import PermissionService
from filevault.store.identity import IdentityService, hash_password, verify_password
from filevault.store.tree import FileTreeService
from filevault.store.types import (
    AccessExplanation,
    ActivityAction,
    Actor,
    Capability,
    Decision,
    GrantFlags,
    Role,
    UsageStats,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from filevault.models.activity import ActivityRecordBase
    from filevault.models.files import FileNodeBase
    from filevault.models.grants import PermissionGrantBase
    from filevault.models.users import UserBase
    from filevault.store.protocol import ContentSink

logger = logging.getLogger(__name__)

USER_PATCH_FIELDS = frozenset({"username", "password", "display_name", "role"})


class FileVaultAsync:
    """Async facade over the identity, tree, grant and audit stores.

    Every operation runs in one transaction: authorize, mutate, append
    the audit record, commit. Any exception rolls all of it back.

    Usage::

        async with FileVaultAsync() as vault:
            alice = await vault.register_user("alice", "s3cret")
            actor = await vault.actor(alice.id)
            root = await vault.root_for(alice.id)
            doc = await vault.upload_file(actor, "a.txt", root.id, "blobs/a", 5)

    Pass ``engine=`` to run against an existing ``AsyncEngine``; the
    vault then never disposes it.
    """

    def __init__(
        self,
        config: VaultConfig | None = None,
        *,
        engine: AsyncEngine | None = None,
        content_sink: ContentSink | None = None,
        user_model: type[UserBase] = User,
        file_model: type[FileNodeBase] = FileNode,
        grant_model: type[PermissionGrantBase] = PermissionGrant,
        activity_model: type[ActivityRecordBase] = ActivityRecord,
    ) -> None:
        self.config = config or VaultConfig()
        self._closed = False

        self._db = VaultDatabase(
            self.config.database_url,
            engine=engine,
            models=(user_model, file_model, grant_model, activity_model),
            echo=self.config.echo,
            busy_timeout_ms=self.config.sqlite_busy_timeout_ms,
        )

        self._identity = IdentityService(user_model)
        self._permissions = PermissionService(grant_model, file_model)
        self._tree = FileTreeService(file_model, self._identity, self._permissions, content_sink)
        self._access = AccessControlEngine(self._tree, self._permissions)
        self._audit = AuditService(activity_model, self._identity)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the engine and tables. Called lazily by every operation."""
        if self._closed:
            raise StorageError("Vault is closed")
        await self._db.open()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._db.close()

    async def __aenter__(self) -> FileVaultAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _transaction(self) -> AsyncGenerator[AsyncSession]:
        await self.open()
        async with self._db.session() as session:
            yield session

    @property
    def database(self) -> VaultDatabase:
        return self._db

    @property
    def tree(self) -> FileTreeService:
        return self._tree

    @property
    def permissions(self) -> PermissionService:
        return self._permissions

    @property
    def access(self) -> AccessControlEngine:
        return self._access

    @property
    def audit(self) -> AuditService:
        return self._audit

    @property
    def identity(self) -> IdentityService:
        return self._identity

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_admin(actor: Actor, action: str) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError(
                f"Only admins may {action}", actor_id=actor.user_id, action=action
            )

    @staticmethod
    def _validate_password(password: str | None) -> str:
        if not password:
            raise ValidationError("Password cannot be empty")
        return password

    async def _create_account(
        self,
        session: AsyncSession,
        username: str,
        password: str,
        display_name: str,
        role: Role | str,
    ) -> UserBase:
        user = await self._identity.create(
            session,
            username,
            hash_password(self._validate_password(password)),
            display_name,
            role,
        )
        await self._tree.create_node(
            session, self.config.root_folder_name, user.id, None, is_container=True
        )
        return user

    async def _writable_parent(
        self, session: AsyncSession, actor: Actor, parent_id: str | None
    ) -> FileNodeBase:
        if parent_id is None:
            root = await self._tree.root_for(session, actor.user_id)
            if root is None:
                raise NotFoundError(
                    f"No root container for user: {actor.user_id}", user_id=actor.user_id
                )
            parent_id = root.id
        parent = await self._access.require(
            session, actor, parent_id, Capability.WRITE, for_update=True
        )
        if not parent.is_container:
            raise InvalidStateError(f"Parent is not a container: {parent_id}", parent_id=parent_id)
        return parent

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def register_user(
        self,
        username: str,
        password: str,
        display_name: str = "",
        role: Role | str = Role.VIEWER,
    ) -> UserBase:
        """Self-registration: create the account and its root container."""
        async with self._transaction() as session:
            user = await self._create_account(session, username, password, display_name, role)
            await self._audit.append(
                session, user.id, ActivityAction.CREATE_USER, f"Registered user {user.username}"
            )
            logger.info("Registered user %s", user.id)
            return user

    async def create_user(
        self,
        actor: Actor,
        username: str,
        password: str,
        display_name: str = "",
        role: Role | str = Role.VIEWER,
    ) -> UserBase:
        """Admin-only account creation."""
        self._require_admin(actor, "create users")
        async with self._transaction() as session:
            user = await self._create_account(session, username, password, display_name, role)
            await self._audit.append(
                session,
                actor.user_id,
                ActivityAction.CREATE_USER,
                f"Created user {user.username} with role {user.role}",
            )
            return user

    async def update_user(self, actor: Actor, user_id: str, **patch: Any) -> UserBase:
        """Update ``username``, ``password``, ``display_name`` or ``role``.

        Users may update themselves; admins may update anyone. Only
        admins may change a role.
        """
        unknown = set(patch) - USER_PATCH_FIELDS
        if unknown:
            raise ValidationError(f"Unknown user fields: {sorted(unknown)}", user_id=user_id)
        if actor.user_id != user_id and not actor.is_admin:
            raise PermissionDeniedError(
                "Users may only update their own account",
                actor_id=actor.user_id,
                user_id=user_id,
            )
        if "role" in patch:
            self._require_admin(actor, "change roles")

        changes = dict(patch)
        if "password" in changes:
            changes["password_hash"] = hash_password(
                self._validate_password(changes.pop("password"))
            )

        async with self._transaction() as session:
            user = await self._identity.update(session, user_id, **changes)
            await self._audit.append(
                session,
                actor.user_id,
                ActivityAction.UPDATE_USER,
                f"Updated user {user.username}: {', '.join(sorted(patch))}",
            )
            return user

    async def delete_user(self, actor: Actor, user_id: str) -> None:
        """Admin-only. Removes the user's files, grants naming them, then the user.

        The whole cascade shares one transaction.
        """
        self._require_admin(actor, "delete users")
        if actor.user_id == user_id:
            raise ValidationError("Admins cannot delete their own account", user_id=user_id)

        async with self._transaction() as session:
            user = await self._identity.get(session, user_id)
            owned = await self._tree.list_by_owner(session, user_id)
            owned_ids = {node.id for node in owned}
            removed_trees = 0
            for node in owned:
                if node.parent_id in owned_ids:
                    continue
                if await self._tree.delete_subtree(session, node.id):
                    removed_trees += 1
            removed_grants = await self._permissions.delete_all_for_user(session, user_id)
            if self.config.purge_activity_on_user_delete:
                await self._audit.purge_actor(session, user_id)
            await self._identity.delete(session, user_id)
            await self._audit.append(
                session, actor.user_id, ActivityAction.DELETE_USER, f"Deleted user {user.username}"
            )
            logger.info(
                "Deleted user %s (%d trees, %d grants)", user_id, removed_trees, removed_grants
            )

    async def list_users(self, actor: Actor) -> list[UserBase]:
        """Admin-only listing of every account."""
        self._require_admin(actor, "list users")
        async with self._transaction() as session:
            return await self._identity.list_all(session)

    async def authenticate(self, username: str, password: str) -> UserBase | None:
        """Return the user if *password* verifies, else None."""
        async with self._transaction() as session:
            user = await self._identity.get_by_username(session, username)
        if user is None or not verify_password(user.password_hash, password):
            logger.debug("Authentication failed for %r", username)
            return None
        return user

    async def actor(self, user_id: str) -> Actor:
        """Build the ``Actor`` for an already-verified user id."""
        async with self._transaction() as session:
            user = await self._identity.get(session, user_id)
        return Actor(user.id, Role(user.role))

    async def root_for(self, user_id: str) -> FileNodeBase:
        """The user's root container."""
        async with self._transaction() as session:
            root = await self._tree.root_for(session, user_id)
        if root is None:
            raise NotFoundError(f"No root container for user: {user_id}", user_id=user_id)
        return root

    # ------------------------------------------------------------------
    # Files and folders
    # ------------------------------------------------------------------

    async def create_folder(
        self, actor: Actor, name: str, parent_id: str | None = None
    ) -> FileNodeBase:
        """Create a container under *parent_id* (the actor's root if None).

        The folder belongs to the parent's owner, so content added to a
        shared folder stays in that owner's tree.
        """
        async with self._transaction() as session:
            parent = await self._writable_parent(session, actor, parent_id)
            node = await self._tree.create_node(
                session, name, parent.owner_id, parent.id, is_container=True
            )
            await self._audit.append(
                session, actor.user_id, ActivityAction.CREATE_FOLDER, f"Created folder {node.name}"
            )
            return node

    async def upload_file(
        self,
        actor: Actor,
        name: str,
        parent_id: str | None,
        content_ref: str,
        size_bytes: int,
        mime_type: str | None = None,
    ) -> FileNodeBase:
        """Record a leaf whose bytes were already stored under *content_ref*."""
        async with self._transaction() as session:
            parent = await self._writable_parent(session, actor, parent_id)
            node = await self._tree.create_node(
                session,
                name,
                parent.owner_id,
                parent.id,
                is_container=False,
                content_ref=content_ref,
                size_bytes=size_bytes,
                mime_type=mime_type,
            )
            await self._audit.append(
                session,
                actor.user_id,
                ActivityAction.UPLOAD_FILE,
                f"Uploaded {node.name} ({node.size_bytes} bytes)",
            )
            return node

    async def get_node(self, actor: Actor, node_id: str) -> FileNodeBase:
        async with self._transaction() as session:
            return await self._access.require(session, actor, node_id, Capability.READ)

    async def open_file(self, actor: Actor, node_id: str) -> FileNodeBase:
        """Authorize a download and return the leaf for the content layer."""
        async with self._transaction() as session:
            node = await self._access.require(session, actor, node_id, Capability.READ)
            if node.is_container:
                raise InvalidStateError(f"Cannot download a container: {node_id}", file_id=node_id)
            await self._audit.append(
                session, actor.user_id, ActivityAction.DOWNLOAD_FILE, f"Downloaded {node.name}"
            )
            return node

    async def list_children(
        self, actor: Actor, parent_id: str | None = None
    ) -> list[FileNodeBase]:
        """Readable children of *parent_id*; None lists readable top-level nodes."""
        async with self._transaction() as session:
            if parent_id is not None:
                parent = await self._access.require(session, actor, parent_id, Capability.READ)
                if not parent.is_container:
                    raise InvalidStateError(
                        f"Not a container: {parent_id}", file_id=parent_id
                    )
            children = await self._tree.list_children(session, parent_id)
            return await self._access.filter_allowed(session, actor, children, Capability.READ)

    async def rename_node(self, actor: Actor, node_id: str, name: str) -> FileNodeBase:
        async with self._transaction() as session:
            node = await self._access.require(
                session, actor, node_id, Capability.WRITE, for_update=True
            )
            old_name = node.name
            node = await self._tree.update(session, node_id, name=name)
            await self._audit.append(
                session,
                actor.user_id,
                ActivityAction.UPDATE_FILE,
                f"Renamed {old_name} to {node.name}",
            )
            return node

    async def move_node(self, actor: Actor, node_id: str, new_parent_id: str) -> FileNodeBase:
        """Reparent *node_id* under *new_parent_id* within the same owner's tree."""
        async with self._transaction() as session:
            node = await self._access.require(
                session, actor, node_id, Capability.WRITE, for_update=True
            )
            parent = await self._access.require(
                session, actor, new_parent_id, Capability.WRITE, for_update=True
            )
            if parent.owner_id != node.owner_id:
                raise ValidationError(
                    "Cannot move a node into another user's tree",
                    file_id=node_id,
                    parent_id=new_parent_id,
                )
            node = await self._tree.update(session, node_id, parent_id=new_parent_id)
            await self._audit.append(
                session,
                actor.user_id,
                ActivityAction.UPDATE_FILE,
                f"Moved {node.name} into {parent.name}",
            )
            return node

    async def delete_node(self, actor: Actor, node_id: str) -> None:
        """Delete *node_id* and its whole subtree, grants and content included."""
        async with self._transaction() as session:
            node = await self._access.require(
                session, actor, node_id, Capability.DELETE, for_update=True
            )
            kind = "folder" if node.is_container else "file"
            name = node.name
            await self._tree.delete_subtree(session, node_id)
            await self._audit.append(
                session, actor.user_id, ActivityAction.DELETE_FILE, f"Deleted {kind} {name}"
            )

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def share(
        self,
        actor: Actor,
        file_id: str,
        grantee_id: str,
        flags: GrantFlags | None = None,
    ) -> PermissionGrantBase:
        """Create or merge the grant for *grantee_id* on *file_id*.

        Unsupplied flags default to read-only on a new grant and are
        left unchanged on an existing one. A sharer may only enable
        capabilities they hold on the node themselves.
        """
        flags = flags or GrantFlags()
        async with self._transaction() as session:
            node = await self._access.require(session, actor, file_id, Capability.SHARE)
            grantee = await self._identity.get(session, grantee_id)
            if node.owner_id == grantee.id:
                raise ValidationError(
                    "Cannot share a file with its owner", file_id=file_id, user_id=grantee_id
                )
            existing = await self._permissions.get(session, file_id, grantee.id)
            requested = flags.resolved() if existing is None else flags.supplied()
            for capability in Capability:
                if not requested.get(capability.flag):
                    continue
                explanation = await self._access.explain_node(session, actor, node, capability)
                if not explanation.decision.allowed:
                    raise PermissionDeniedError(
                        f"Cannot grant {capability.value!r} without holding it",
                        actor_id=actor.user_id,
                        file_id=file_id,
                        capability=capability.value,
                    )
            grant = await self._permissions.upsert(
                session, file_id, grantee.id, flags, granted_by=actor.user_id
            )
            assert grant is not None
            await self._audit.append(
                session,
                actor.user_id,
                ActivityAction.SHARE_FILE,
                f"Shared {node.name} with {grantee.username}",
            )
            return grant

    async def revoke(self, actor: Actor, file_id: str, grantee_id: str) -> None:
        async with self._transaction() as session:
            node = await self._access.require(session, actor, file_id, Capability.SHARE)
            if not await self._permissions.revoke(session, file_id, grantee_id):
                raise NotFoundError(
                    f"No grant on {file_id} for {grantee_id}",
                    file_id=file_id,
                    user_id=grantee_id,
                )
            await self._audit.append(
                session,
                actor.user_id,
                ActivityAction.REVOKE_SHARE,
                f"Revoked share of {node.name} from {grantee_id}",
            )

    async def list_grants(self, actor: Actor, file_id: str) -> list[PermissionGrantBase]:
        """Grants on *file_id*. Requires the share capability."""
        async with self._transaction() as session:
            await self._access.require(session, actor, file_id, Capability.SHARE)
            return await self._permissions.list_for_file(session, file_id)

    async def shared_with_me(self, actor: Actor) -> list[FileNodeBase]:
        async with self._transaction() as session:
            return await self._access.shared_with(session, actor.user_id)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def authorize(
        self, actor: Actor, file_id: str, capability: Capability | str
    ) -> Decision:
        """Pure decision; raises ``NotFoundError`` if *file_id* does not resolve."""
        async with self._transaction() as session:
            return await self._access.authorize(session, actor, file_id, capability)

    async def explain(
        self, actor: Actor, file_id: str, capability: Capability | str
    ) -> AccessExplanation:
        async with self._transaction() as session:
            return await self._access.explain(session, actor, file_id, capability)

    # ------------------------------------------------------------------
    # Activity and usage
    # ------------------------------------------------------------------

    async def activity(
        self, actor: Actor, user_id: str | None = None, limit: int | None = None
    ) -> list[ActivityRecordBase]:
        """Activity newest first.

        Without *user_id* admins get the global log and everyone else
        their own. Reading another user's log is admin only.
        """
        if limit is not None and limit < 0:
            raise ValidationError("Limit cannot be negative", limit=limit)
        if user_id is not None and user_id != actor.user_id:
            self._require_admin(actor, "read other users' activity")

        async with self._transaction() as session:
            if user_id is None and actor.is_admin:
                return await self._audit.list_all(session, limit)
            return await self._audit.list_for_user(session, user_id or actor.user_id, limit)

    async def usage(self, actor: Actor) -> UsageStats:
        """Storage report for the actor's own tree."""
        async with self._transaction() as session:
            owned = await self._tree.list_by_owner(session, actor.user_id)
            shared = await self._access.shared_with(session, actor.user_id)
            recent = await self._audit.list_for_user(
                session, actor.user_id, self.config.recent_activity_limit
            )
        leaves = [node for node in owned if not node.is_container]
        return UsageStats(
            storage_used=sum(node.size_bytes for node in leaves),
            file_count=len(leaves),
            folder_count=len(owned) - len(leaves),
            shared_files_count=len(shared),
            recent_activity=recent,
        )
