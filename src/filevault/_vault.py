"""Main FileVault class — sync wrappers over FileVaultAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from filevault._vault_async import FileVaultAsync

if TYPE_CHECKING:
    from filevault.config import VaultConfig
    from filevault.models.activity import ActivityRecordBase
    from filevault.models.files import FileNodeBase
    from filevault.models.grants import PermissionGrantBase
    from filevault.models.users import UserBase
    from filevault.store.protocol import ContentSink
    from filevault.store.types import (
        AccessExplanation,
        Actor,
        Capability,
        Decision,
        GrantFlags,
        Role,
        UsageStats,
    )

logger = logging.getLogger(__name__)


class FileVault:
    """Blocking facade over :class:`FileVaultAsync`.

    Presents a synchronous API backed by a private event loop in a
    background thread, so callers can use the vault from plain sync
    code or from inside an unrelated running loop.

    Usage::

        with FileVault(VaultConfig(database_url="sqlite+aiosqlite:///vault.db")) as vault:
            alice = vault.register_user("alice", "s3cret")
            actor = vault.actor(alice.id)
            vault.create_folder(actor, "docs")
    """

    def __init__(
        self,
        config: VaultConfig | None = None,
        *,
        content_sink: ContentSink | None = None,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async = FileVaultAsync(config, content_sink=content_sink)
        try:
            self._run(self._async.open())
        except BaseException:
            self._stop_loop()
            raise

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)

    def close(self) -> None:
        """Dispose the database, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._stop_loop()

    def __enter__(self) -> FileVault:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    @property
    def aio(self) -> FileVaultAsync:
        """The underlying ``FileVaultAsync`` (for advanced async use)."""
        return self._async

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_user(
        self,
        username: str,
        password: str,
        display_name: str = "",
        role: Role | str = "viewer",
    ) -> UserBase:
        return self._run(self._async.register_user(username, password, display_name, role))

    def create_user(
        self,
        actor: Actor,
        username: str,
        password: str,
        display_name: str = "",
        role: Role | str = "viewer",
    ) -> UserBase:
        return self._run(
            self._async.create_user(actor, username, password, display_name, role)
        )

    def update_user(self, actor: Actor, user_id: str, **patch: Any) -> UserBase:
        return self._run(self._async.update_user(actor, user_id, **patch))

    def delete_user(self, actor: Actor, user_id: str) -> None:
        self._run(self._async.delete_user(actor, user_id))

    def list_users(self, actor: Actor) -> list[UserBase]:
        return self._run(self._async.list_users(actor))

    def authenticate(self, username: str, password: str) -> UserBase | None:
        return self._run(self._async.authenticate(username, password))

    def actor(self, user_id: str) -> Actor:
        return self._run(self._async.actor(user_id))

    def root_for(self, user_id: str) -> FileNodeBase:
        return self._run(self._async.root_for(user_id))

    # ------------------------------------------------------------------
    # Files and folders
    # ------------------------------------------------------------------

    def create_folder(self, actor: Actor, name: str, parent_id: str | None = None) -> FileNodeBase:
        return self._run(self._async.create_folder(actor, name, parent_id))

    def upload_file(
        self,
        actor: Actor,
        name: str,
        parent_id: str | None,
        content_ref: str,
        size_bytes: int,
        mime_type: str | None = None,
    ) -> FileNodeBase:
        return self._run(
            self._async.upload_file(actor, name, parent_id, content_ref, size_bytes, mime_type)
        )

    def get_node(self, actor: Actor, node_id: str) -> FileNodeBase:
        return self._run(self._async.get_node(actor, node_id))

    def open_file(self, actor: Actor, node_id: str) -> FileNodeBase:
        return self._run(self._async.open_file(actor, node_id))

    def list_children(self, actor: Actor, parent_id: str | None = None) -> list[FileNodeBase]:
        return self._run(self._async.list_children(actor, parent_id))

    def rename_node(self, actor: Actor, node_id: str, name: str) -> FileNodeBase:
        return self._run(self._async.rename_node(actor, node_id, name))

    def move_node(self, actor: Actor, node_id: str, new_parent_id: str) -> FileNodeBase:
        return self._run(self._async.move_node(actor, node_id, new_parent_id))

    def delete_node(self, actor: Actor, node_id: str) -> None:
        self._run(self._async.delete_node(actor, node_id))

    # ------------------------------------------------------------------
    # Sharing and decisions
    # ------------------------------------------------------------------

    def share(
        self,
        actor: Actor,
        file_id: str,
        grantee_id: str,
        flags: GrantFlags | None = None,
    ) -> PermissionGrantBase:
        return self._run(self._async.share(actor, file_id, grantee_id, flags))

    def revoke(self, actor: Actor, file_id: str, grantee_id: str) -> None:
        self._run(self._async.revoke(actor, file_id, grantee_id))

    def list_grants(self, actor: Actor, file_id: str) -> list[PermissionGrantBase]:
        return self._run(self._async.list_grants(actor, file_id))

    def shared_with_me(self, actor: Actor) -> list[FileNodeBase]:
        return self._run(self._async.shared_with_me(actor))

    def authorize(self, actor: Actor, file_id: str, capability: Capability | str) -> Decision:
        return self._run(self._async.authorize(actor, file_id, capability))

    def explain(
        self, actor: Actor, file_id: str, capability: Capability | str
    ) -> AccessExplanation:
        return self._run(self._async.explain(actor, file_id, capability))

    # ------------------------------------------------------------------
    # Activity and usage
    # ------------------------------------------------------------------

    def activity(
        self, actor: Actor, user_id: str | None = None, limit: int | None = None
    ) -> list[ActivityRecordBase]:
        return self._run(self._async.activity(actor, user_id, limit))

    def usage(self, actor: Actor) -> UsageStats:
        return self._run(self._async.usage(actor))
