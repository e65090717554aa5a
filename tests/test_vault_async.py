"""Tests for the FileVaultAsync facade."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from filevault import (
    Actor,
    Capability,
    ConflictError,
    Decision,
    FileVaultAsync,
    GrantFlags,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    Role,
    StorageError,
    ValidationError,
    VaultConfig,
)
from filevault.store.types import ActivityAction

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
async def vault(sink) -> AsyncIterator[FileVaultAsync]:
    v = FileVaultAsync(content_sink=sink)
    await v.open()
    yield v
    await v.close()


@pytest.fixture
async def admin(vault: FileVaultAsync) -> Actor:
    user = await vault.register_user("root", "pw-root", "Administrator", Role.ADMIN)
    return await vault.actor(user.id)


@pytest.fixture
async def alice(vault: FileVaultAsync) -> Actor:
    user = await vault.register_user("alice", "pw-alice", "Alice", Role.EDITOR)
    return await vault.actor(user.id)


@pytest.fixture
async def bob(vault: FileVaultAsync) -> Actor:
    user = await vault.register_user("bob", "pw-bob", "Bob")
    return await vault.actor(user.id)


# ==================================================================
# Lifecycle
# ==================================================================


class TestLifecycle:
    async def test_context_manager(self):
        async with FileVaultAsync() as v:
            user = await v.register_user("zed", "pw")
            assert user.id
        assert v.database.engine is None

    async def test_operations_after_close(self):
        v = FileVaultAsync()
        await v.open()
        await v.close()
        with pytest.raises(StorageError):
            await v.register_user("zed", "pw")

    async def test_close_idempotent(self):
        v = FileVaultAsync()
        await v.close()
        await v.close()

    async def test_external_engine_not_disposed(self):
        engine = create_async_engine("sqlite+aiosqlite://", echo=False)
        async with FileVaultAsync(engine=engine) as v:
            await v.register_user("zed", "pw")
        assert v.database.engine is engine
        # Engine is still usable by its owner
        async with engine.connect() as conn:
            result = await conn.exec_driver_sql("SELECT count(*) FROM vault_users")
            assert result.scalar() == 1
        await engine.dispose()

    async def test_durable_file_database(self, tmp_path: Path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}"
        async with FileVaultAsync(VaultConfig(database_url=url)) as v:
            user = await v.register_user("zed", "pw")
        async with FileVaultAsync(VaultConfig(database_url=url)) as v:
            root = await v.root_for(user.id)
            assert root.name == "Root"


# ==================================================================
# Users
# ==================================================================


class TestUsers:
    async def test_register_provisions_root(self, vault: FileVaultAsync, alice: Actor):
        root = await vault.root_for(alice.user_id)
        assert root.is_container
        assert root.parent_id is None
        assert root.owner_id == alice.user_id
        assert root.name == "Root"

    async def test_custom_root_name(self):
        async with FileVaultAsync(VaultConfig(root_folder_name="Home")) as v:
            user = await v.register_user("zed", "pw")
            assert (await v.root_for(user.id)).name == "Home"

    async def test_register_audited(self, vault: FileVaultAsync, alice: Actor):
        records = await vault.activity(alice)
        assert [r.action for r in records] == [ActivityAction.CREATE_USER.value]

    async def test_duplicate_username(self, vault: FileVaultAsync, alice: Actor):
        with pytest.raises(ConflictError):
            await vault.register_user("Alice", "other")

    async def test_duplicate_leaves_no_partial_rows(
        self, vault: FileVaultAsync, alice: Actor, admin: Actor
    ):
        with pytest.raises(ConflictError):
            await vault.register_user("ALICE", "other")
        assert len(await vault.list_users(admin)) == 2

    async def test_empty_password(self, vault: FileVaultAsync):
        with pytest.raises(ValidationError):
            await vault.register_user("zed", "")

    async def test_authenticate(self, vault: FileVaultAsync, alice: Actor):
        user = await vault.authenticate("ALICE", "pw-alice")
        assert user is not None
        assert user.id == alice.user_id
        assert await vault.authenticate("alice", "wrong") is None
        assert await vault.authenticate("nobody", "pw") is None

    async def test_actor_reflects_role(self, vault: FileVaultAsync, admin: Actor, bob: Actor):
        assert admin.role is Role.ADMIN
        assert bob.role is Role.VIEWER

    async def test_actor_unknown(self, vault: FileVaultAsync):
        with pytest.raises(NotFoundError):
            await vault.actor("ghost")

    async def test_create_user_admin_only(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor
    ):
        user = await vault.create_user(admin, "dave", "pw", role="editor")
        assert user.role == "editor"
        with pytest.raises(PermissionDeniedError):
            await vault.create_user(alice, "erin", "pw")

    async def test_update_self(self, vault: FileVaultAsync, alice: Actor):
        user = await vault.update_user(alice, alice.user_id, display_name="Alice L.", password="new")
        assert user.display_name == "Alice L."
        assert await vault.authenticate("alice", "new") is not None
        assert await vault.authenticate("alice", "pw-alice") is None

    async def test_update_other_requires_admin(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor, admin: Actor
    ):
        with pytest.raises(PermissionDeniedError):
            await vault.update_user(alice, bob.user_id, display_name="Bobby")
        user = await vault.update_user(admin, bob.user_id, display_name="Bobby")
        assert user.display_name == "Bobby"

    async def test_role_change_requires_admin(
        self, vault: FileVaultAsync, alice: Actor, admin: Actor
    ):
        with pytest.raises(PermissionDeniedError):
            await vault.update_user(alice, alice.user_id, role="admin")
        user = await vault.update_user(admin, alice.user_id, role="viewer")
        assert user.role == "viewer"

    async def test_update_unknown_field(self, vault: FileVaultAsync, alice: Actor):
        with pytest.raises(ValidationError):
            await vault.update_user(alice, alice.user_id, password_hash="x")

    async def test_list_users_admin_only(self, vault: FileVaultAsync, alice: Actor):
        with pytest.raises(PermissionDeniedError):
            await vault.list_users(alice)


# ==================================================================
# Files and folders
# ==================================================================


class TestFiles:
    async def test_create_folder_defaults_to_root(self, vault: FileVaultAsync, alice: Actor):
        folder = await vault.create_folder(alice, "docs")
        root = await vault.root_for(alice.user_id)
        assert folder.parent_id == root.id
        assert folder.owner_id == alice.user_id

    async def test_upload_and_open(self, vault: FileVaultAsync, alice: Actor):
        docs = await vault.create_folder(alice, "docs")
        f = await vault.upload_file(alice, "a.txt", docs.id, "blobs/a", 11, "text/plain")
        opened = await vault.open_file(alice, f.id)
        assert opened.content_ref == "blobs/a"
        assert opened.size_bytes == 11

    async def test_open_container_rejected(self, vault: FileVaultAsync, alice: Actor):
        docs = await vault.create_folder(alice, "docs")
        with pytest.raises(InvalidStateError):
            await vault.open_file(alice, docs.id)

    async def test_create_in_foreign_folder_denied(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        root = await vault.root_for(alice.user_id)
        with pytest.raises(PermissionDeniedError):
            await vault.create_folder(bob, "intruder", root.id)

    async def test_write_grant_creates_in_owners_tree(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        shared = await vault.create_folder(alice, "shared")
        await vault.share(alice, shared.id, bob.user_id, GrantFlags(can_write=True))
        f = await vault.upload_file(bob, "b.txt", shared.id, "blobs/b", 2)
        assert f.owner_id == alice.user_id

    async def test_upload_under_leaf(self, vault: FileVaultAsync, alice: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        with pytest.raises(InvalidStateError):
            await vault.upload_file(alice, "b.txt", f.id, "blobs/b", 1)

    async def test_list_children_filters_by_read(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        shared = await vault.create_folder(alice, "shared")
        visible = await vault.upload_file(alice, "visible.txt", shared.id, "blobs/v", 1)
        await vault.upload_file(alice, "hidden.txt", shared.id, "blobs/h", 1)
        await vault.share(alice, shared.id, bob.user_id)
        await vault.share(alice, visible.id, bob.user_id)
        names = [n.name for n in await vault.list_children(bob, shared.id)]
        assert names == ["visible.txt"]
        assert len(await vault.list_children(alice, shared.id)) == 2

    async def test_list_children_requires_read(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        root = await vault.root_for(alice.user_id)
        with pytest.raises(PermissionDeniedError):
            await vault.list_children(bob, root.id)

    async def test_list_top_level(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        top = await vault.list_children(alice)
        assert [n.owner_id for n in top] == [alice.user_id]

    async def test_rename(self, vault: FileVaultAsync, alice: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        renamed = await vault.rename_node(alice, f.id, "b.txt")
        assert renamed.name == "b.txt"

    async def test_rename_invalid(self, vault: FileVaultAsync, alice: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        with pytest.raises(ValidationError):
            await vault.rename_node(alice, f.id, "  ")
        assert (await vault.get_node(alice, f.id)).name == "a.txt"

    async def test_move(self, vault: FileVaultAsync, alice: Actor):
        a = await vault.create_folder(alice, "a")
        b = await vault.create_folder(alice, "b")
        moved = await vault.move_node(alice, b.id, a.id)
        assert moved.parent_id == a.id

    async def test_move_locks_both_nodes(
        self, vault: FileVaultAsync, alice: Actor, monkeypatch: pytest.MonkeyPatch
    ):
        a = await vault.create_folder(alice, "a")
        b = await vault.create_folder(alice, "b")
        locked = []
        get = vault.tree.get

        async def recording_get(session, node_id, *, for_update=False):
            if for_update:
                locked.append(node_id)
            return await get(session, node_id, for_update=for_update)

        monkeypatch.setattr(vault.tree, "get", recording_get)
        await vault.move_node(alice, b.id, a.id)
        assert a.id in locked
        assert b.id in locked

    async def test_move_into_descendant(self, vault: FileVaultAsync, alice: Actor):
        a = await vault.create_folder(alice, "a")
        b = await vault.create_folder(alice, "b", a.id)
        with pytest.raises(ValidationError):
            await vault.move_node(alice, a.id, b.id)

    async def test_move_across_owners(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor, bob: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        bob_root = await vault.root_for(bob.user_id)
        with pytest.raises(ValidationError, match="another user"):
            await vault.move_node(admin, f.id, bob_root.id)

    async def test_get_node_denied(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        with pytest.raises(PermissionDeniedError):
            await vault.get_node(bob, f.id)

    async def test_admin_reads_everything(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        assert (await vault.get_node(admin, f.id)).id == f.id


# ==================================================================
# Deletion
# ==================================================================


class TestDelete:
    async def test_delete_folder_cascades(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor, sink
    ):
        docs = await vault.create_folder(alice, "docs")
        inner = await vault.create_folder(alice, "inner", docs.id)
        f = await vault.upload_file(alice, "a.txt", inner.id, "blobs/a", 3)
        await vault.share(alice, f.id, bob.user_id)

        await vault.delete_node(alice, docs.id)

        for node_id in (docs.id, inner.id, f.id):
            with pytest.raises(NotFoundError):
                await vault.get_node(alice, node_id)
        assert await vault.shared_with_me(bob) == []
        assert sink.released == ["blobs/a"]

    async def test_delete_requires_capability(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        await vault.share(alice, f.id, bob.user_id, GrantFlags(can_write=True))
        with pytest.raises(PermissionDeniedError):
            await vault.delete_node(bob, f.id)
        await vault.share(alice, f.id, bob.user_id, GrantFlags(can_delete=True))
        await vault.delete_node(bob, f.id)

    async def test_delete_root_removes_file_and_grants(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        root = await vault.root_for(alice.user_id)
        f = await vault.upload_file(alice, "a.txt", root.id, "blobs/a", 1)
        await vault.share(alice, f.id, bob.user_id)

        await vault.delete_node(alice, root.id)

        with pytest.raises(NotFoundError):
            await vault.authorize(alice, f.id, Capability.READ)
        assert await vault.shared_with_me(bob) == []
        assert (await vault.usage(alice)).file_count == 0

    async def test_backend_failure_aborts_whole_cascade(
        self,
        vault: FileVaultAsync,
        alice: Actor,
        bob: Actor,
        monkeypatch: pytest.MonkeyPatch,
    ):
        docs = await vault.create_folder(alice, "docs")
        inner = await vault.create_folder(alice, "inner", docs.id)
        a = await vault.upload_file(alice, "a.txt", inner.id, "blobs/a", 3)
        b = await vault.upload_file(alice, "b.txt", docs.id, "blobs/b", 3)
        subtree = (docs, inner, a, b)
        for node in subtree:
            await vault.share(alice, node.id, bob.user_id)

        visited = []
        delete_all_for_file = vault.permissions.delete_all_for_file

        async def failing_delete(session, file_id):
            visited.append(file_id)
            if len(visited) == 2:
                raise OperationalError("DELETE", {}, Exception("disk I/O error"))
            return await delete_all_for_file(session, file_id)

        monkeypatch.setattr(vault.permissions, "delete_all_for_file", failing_delete)
        with pytest.raises(StorageError):
            await vault.delete_node(alice, docs.id)
        monkeypatch.undo()

        assert len(visited) == 2
        for node in subtree:
            assert (await vault.get_node(alice, node.id)).id == node.id
            grants = await vault.list_grants(alice, node.id)
            assert [g.grantee_user_id for g in grants] == [bob.user_id]
        assert len(await vault.shared_with_me(bob)) == 4

    async def test_delete_user_cascades(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor, bob: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 1)
        g = await vault.upload_file(bob, "b.txt", None, "blobs/b", 1)
        await vault.share(alice, f.id, bob.user_id)
        await vault.share(bob, g.id, alice.user_id)

        await vault.delete_user(admin, alice.user_id)

        with pytest.raises(NotFoundError):
            await vault.actor(alice.user_id)
        with pytest.raises(NotFoundError):
            await vault.get_node(admin, f.id)
        assert await vault.shared_with_me(bob) == []
        assert await vault.list_grants(bob, g.id) == []
        # Alice's own records stay unless purging is configured
        assert len(await vault.activity(admin, alice.user_id)) > 0

    async def test_delete_user_purges_activity(self):
        async with FileVaultAsync(VaultConfig(purge_activity_on_user_delete=True)) as v:
            admin_user = await v.register_user("root", "pw", role="admin")
            admin = await v.actor(admin_user.id)
            zed = await v.register_user("zed", "pw")
            await v.delete_user(admin, zed.id)
            assert await v.activity(admin, zed.id) == []

    async def test_delete_user_admin_only(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        with pytest.raises(PermissionDeniedError):
            await vault.delete_user(alice, bob.user_id)

    async def test_admin_cannot_delete_self(self, vault: FileVaultAsync, admin: Actor):
        with pytest.raises(ValidationError):
            await vault.delete_user(admin, admin.user_id)

    async def test_delete_unknown_user(self, vault: FileVaultAsync, admin: Actor):
        with pytest.raises(NotFoundError):
            await vault.delete_user(admin, "ghost")


# ==================================================================
# Sharing
# ==================================================================


class TestSharing:
    async def test_share_then_revoke(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)

        await vault.share(alice, f.id, bob.user_id, GrantFlags(can_read=True))
        assert await vault.authorize(bob, f.id, "read") is Decision.ALLOW
        assert await vault.authorize(bob, f.id, "write") is Decision.DENY
        assert [n.id for n in await vault.shared_with_me(bob)] == [f.id]

        await vault.revoke(alice, f.id, bob.user_id)
        assert await vault.authorize(bob, f.id, "read") is Decision.DENY
        assert await vault.shared_with_me(bob) == []

    async def test_share_records_granter(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        grant = await vault.share(alice, f.id, bob.user_id)
        assert grant.granted_by == alice.user_id
        assert grant.can_read is True
        assert grant.can_write is False

    async def test_share_with_owner_rejected(self, vault: FileVaultAsync, alice: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        with pytest.raises(ValidationError):
            await vault.share(alice, f.id, alice.user_id)

    async def test_share_with_unknown_user(self, vault: FileVaultAsync, alice: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        with pytest.raises(NotFoundError):
            await vault.share(alice, f.id, "ghost")

    async def test_share_requires_share_capability(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor, bob: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        await vault.share(alice, f.id, bob.user_id)
        with pytest.raises(PermissionDeniedError):
            await vault.share(bob, f.id, admin.user_id)
        await vault.share(alice, f.id, bob.user_id, GrantFlags(can_share=True))
        await vault.share(bob, f.id, admin.user_id)
        assert len(await vault.list_grants(alice, f.id)) == 2

    async def test_sharer_cannot_grant_beyond_own_capabilities(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor, bob: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        await vault.share(alice, f.id, bob.user_id, GrantFlags(can_share=True))

        with pytest.raises(PermissionDeniedError, match="write"):
            await vault.share(bob, f.id, admin.user_id, GrantFlags(can_write=True))
        with pytest.raises(PermissionDeniedError, match="delete"):
            await vault.share(bob, f.id, bob.user_id, GrantFlags(can_delete=True))

        grants = await vault.list_grants(alice, f.id)
        assert [g.grantee_user_id for g in grants] == [bob.user_id]
        assert grants[0].can_write is False
        assert grants[0].can_delete is False

        await vault.share(bob, f.id, admin.user_id, GrantFlags(can_read=True, can_share=True))
        assert len(await vault.list_grants(alice, f.id)) == 2

    async def test_revoke_missing_grant(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        with pytest.raises(NotFoundError):
            await vault.revoke(alice, f.id, bob.user_id)

    async def test_list_grants_requires_share(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        await vault.share(alice, f.id, bob.user_id)
        with pytest.raises(PermissionDeniedError):
            await vault.list_grants(bob, f.id)

    async def test_explain(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        assert (await vault.explain(alice, f.id, "delete")).rule == "owner"
        assert (await vault.explain(bob, f.id, "read")).rule is None


# ==================================================================
# Concurrency
# ==================================================================


class TestConcurrency:
    async def test_failed_operation_keeps_concurrent_work(
        self, vault: FileVaultAsync, alice: Actor
    ):
        root = await vault.root_for(alice.user_id)
        uploaded = []
        for i in range(20):
            node, failure = await asyncio.gather(
                vault.upload_file(alice, f"f{i}.txt", root.id, f"blobs/{i}", 1),
                vault.share(alice, root.id, "no-such-user"),
                return_exceptions=True,
            )
            assert isinstance(failure, NotFoundError)
            uploaded.append(node.id)

        children = await vault.list_children(alice, root.id)
        assert {n.id for n in children} == set(uploaded)
        records = await vault.activity(alice, limit=100)
        uploads = [r for r in records if r.action == ActivityAction.UPLOAD_FILE.value]
        assert len(uploads) == 20


# ==================================================================
# Activity and usage
# ==================================================================


class TestActivity:
    async def test_every_mutation_audited(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor, bob: Actor
    ):
        docs = await vault.create_folder(alice, "docs")
        f = await vault.upload_file(alice, "a.txt", docs.id, "blobs/a", 5)
        await vault.open_file(alice, f.id)
        await vault.rename_node(alice, f.id, "b.txt")
        await vault.share(alice, f.id, bob.user_id)
        await vault.revoke(alice, f.id, bob.user_id)
        await vault.delete_node(alice, docs.id)

        actions = [r.action for r in await vault.activity(alice)]
        assert actions == [
            "DELETE_FILE",
            "REVOKE_SHARE",
            "SHARE_FILE",
            "UPDATE_FILE",
            "DOWNLOAD_FILE",
            "UPLOAD_FILE",
            "CREATE_FOLDER",
            "CREATE_USER",
        ]

    async def test_failed_operation_not_audited(
        self, vault: FileVaultAsync, alice: Actor, bob: Actor
    ):
        f = await vault.upload_file(alice, "a.txt", None, "blobs/a", 5)
        before = len(await vault.activity(bob))
        with pytest.raises(PermissionDeniedError):
            await vault.rename_node(bob, f.id, "pwned.txt")
        assert len(await vault.activity(bob)) == before

    async def test_admin_sees_global_log(
        self, vault: FileVaultAsync, admin: Actor, alice: Actor, bob: Actor
    ):
        actors = {r.actor_user_id for r in await vault.activity(admin)}
        assert actors == {admin.user_id, alice.user_id, bob.user_id}

    async def test_non_admin_sees_own_log(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        assert {r.actor_user_id for r in await vault.activity(bob)} == {bob.user_id}
        with pytest.raises(PermissionDeniedError):
            await vault.activity(bob, alice.user_id)

    async def test_limit(self, vault: FileVaultAsync, alice: Actor):
        for i in range(3):
            await vault.create_folder(alice, f"f{i}")
        records = await vault.activity(alice, limit=2)
        assert [r.details for r in records] == ["Created folder f2", "Created folder f1"]
        with pytest.raises(ValidationError):
            await vault.activity(alice, limit=-1)


class TestUsage:
    async def test_usage(self, vault: FileVaultAsync, alice: Actor, bob: Actor):
        docs = await vault.create_folder(alice, "docs")
        await vault.upload_file(alice, "a.txt", docs.id, "blobs/a", 5)
        await vault.upload_file(alice, "b.txt", None, "blobs/b", 7)
        g = await vault.upload_file(bob, "c.txt", None, "blobs/c", 9)
        await vault.share(bob, g.id, alice.user_id)

        stats = await vault.usage(alice)
        assert stats.storage_used == 12
        assert stats.file_count == 2
        assert stats.folder_count == 2  # root + docs
        assert stats.shared_files_count == 1
        assert stats.recent_activity[0].action == "UPLOAD_FILE"

    async def test_recent_activity_limit(self):
        async with FileVaultAsync(VaultConfig(recent_activity_limit=2)) as v:
            user = await v.register_user("zed", "pw")
            actor = await v.actor(user.id)
            for i in range(4):
                await v.create_folder(actor, f"f{i}")
            assert len((await v.usage(actor)).recent_activity) == 2

