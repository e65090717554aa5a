"""Store layer — identity, file tree, grants, access control, audit."""

from filevault.store.access import AccessControlEngine
from filevault.store.audit import AuditService
from filevault.store.content import LocalDiskContentSink, NullContentSink
from filevault.store.database import VaultDatabase
from filevault.store.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
    VaultError,
)
from filevault.store.grants import PermissionService
from filevault.store.identity import IdentityService, hash_password, verify_password
from filevault.store.protocol import (
    AuditStore,
    ContentSink,
    FileTreeStore,
    IdentityStore,
    PermissionStore,
)
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

__all__ = [
    "AccessControlEngine",
    "AccessExplanation",
    "ActivityAction",
    "Actor",
    "AuditService",
    "AuditStore",
    "Capability",
    "ConflictError",
    "ContentSink",
    "Decision",
    "FileTreeService",
    "FileTreeStore",
    "GrantFlags",
    "IdentityService",
    "IdentityStore",
    "InvalidStateError",
    "LocalDiskContentSink",
    "NotFoundError",
    "NullContentSink",
    "PermissionDeniedError",
    "PermissionService",
    "PermissionStore",
    "Role",
    "StorageError",
    "UsageStats",
    "ValidationError",
    "VaultDatabase",
    "VaultError",
    "hash_password",
    "verify_password",
]
