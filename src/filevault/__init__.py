"""filevault: hierarchical file store with per-node access control.

Users own trees of folders and files, share individual nodes with
capability grants, and every change lands in an audit log.
"""

__version__ = "0.1.0"

from filevault._vault import FileVault
from filevault._vault_async import FileVaultAsync
from filevault.config import VaultConfig
from filevault.store.content import LocalDiskContentSink, NullContentSink
from filevault.store.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
    VaultError,
)
from filevault.store.protocol import ContentSink
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
    "AccessExplanation",
    "ActivityAction",
    "Actor",
    "Capability",
    "ConflictError",
    "ContentSink",
    "Decision",
    "FileVault",
    "FileVaultAsync",
    "GrantFlags",
    "InvalidStateError",
    "LocalDiskContentSink",
    "NotFoundError",
    "NullContentSink",
    "PermissionDeniedError",
    "Role",
    "StorageError",
    "UsageStats",
    "ValidationError",
    "VaultConfig",
    "VaultError",
    "__version__",
]
