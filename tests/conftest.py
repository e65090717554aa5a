"""Shared fixtures for filevault tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from filevault.models import ActivityRecord, FileNode, PermissionGrant, User
from filevault.store.access import AccessControlEngine
from filevault.store.audit import AuditService
from filevault.store.grants import PermissionService
from filevault.store.identity import IdentityService
from filevault.store.tree import FileTreeService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from filevault.models.users import UserBase


class RecordingSink:
    """Content sink that remembers every released ref."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.released: list[str] = []
        self.fail_on = fail_on or set()

    async def release(self, content_ref: str) -> None:
        if content_ref in self.fail_on:
            raise OSError(f"cannot release {content_ref}")
        self.released.append(content_ref)


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def identity() -> IdentityService:
    return IdentityService(User)


@pytest.fixture
def permissions() -> PermissionService:
    return PermissionService(PermissionGrant, FileNode)


@pytest.fixture
def tree(
    identity: IdentityService, permissions: PermissionService, sink: RecordingSink
) -> FileTreeService:
    return FileTreeService(FileNode, identity, permissions, sink)


@pytest.fixture
def access(tree: FileTreeService, permissions: PermissionService) -> AccessControlEngine:
    return AccessControlEngine(tree, permissions)


@pytest.fixture
def audit(identity: IdentityService) -> AuditService:
    return AuditService(ActivityRecord, identity)


@pytest.fixture
async def alice(identity: IdentityService, async_session: AsyncSession) -> UserBase:
    return await identity.create(async_session, "alice", "hash-a", "Alice", "editor")


@pytest.fixture
async def bob(identity: IdentityService, async_session: AsyncSession) -> UserBase:
    return await identity.create(async_session, "bob", "hash-b", "Bob", "viewer")


@pytest.fixture
async def carol(identity: IdentityService, async_session: AsyncSession) -> UserBase:
    return await identity.create(async_session, "carol", "hash-c", "Carol", "admin")
