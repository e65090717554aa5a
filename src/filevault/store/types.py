"""Value types: roles, capabilities, decisions, actors, grant flags, usage stats."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filevault.models.activity import ActivityRecordBase


class Role(str, Enum):
    """Global account role. Admins bypass every node-level check."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Capability(str, Enum):
    """Node-level capability checked by the access control engine."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    SHARE = "share"

    @property
    def flag(self) -> str:
        """Name of the matching boolean column on a grant."""
        return f"can_{self.value}"


class Decision(str, Enum):
    """Outcome of an authorization check."""

    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


class ActivityAction(str, Enum):
    """Audit tags appended by the facade operations."""

    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    CREATE_FOLDER = "CREATE_FOLDER"
    UPLOAD_FILE = "UPLOAD_FILE"
    DOWNLOAD_FILE = "DOWNLOAD_FILE"
    UPDATE_FILE = "UPDATE_FILE"
    DELETE_FILE = "DELETE_FILE"
    SHARE_FILE = "SHARE_FILE"
    REVOKE_SHARE = "REVOKE_SHARE"


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller identity handed to the core by the auth layer.

    Attributes:
        user_id: Verified id of the calling user.
        role: The caller's global role; trusted as supplied.
    """

    user_id: str
    role: Role = Role.VIEWER

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True, slots=True)
class GrantFlags:
    """Capability flags for an upsert. ``None`` means "not supplied".

    On first creation unsupplied flags default to read-only; on update
    only supplied flags are changed.
    """

    can_read: bool | None = None
    can_write: bool | None = None
    can_delete: bool | None = None
    can_share: bool | None = None

    DEFAULTS = {"can_read": True, "can_write": False, "can_delete": False, "can_share": False}

    def supplied(self) -> dict[str, bool]:
        """Flags explicitly set by the caller."""
        return {
            name: value
            for name in self.DEFAULTS
            if (value := getattr(self, name)) is not None
        }

    def resolved(self) -> dict[str, bool]:
        """Supplied flags layered over the creation defaults."""
        return {**self.DEFAULTS, **self.supplied()}

    @classmethod
    def of(cls, *capabilities: Capability | str) -> GrantFlags:
        """Build a full flag set that enables exactly *capabilities*."""
        enabled = {Capability(c).flag for c in capabilities}
        return cls(**{name: name in enabled for name in cls.DEFAULTS})


@dataclass(frozen=True, slots=True)
class AccessExplanation:
    """An authorization decision together with the rule that produced it.

    ``rule`` is ``"admin"``, ``"owner"`` or ``"grant"`` for an allow and
    ``None`` when nothing matched.
    """

    decision: Decision
    rule: str | None = None


@dataclass
class UsageStats:
    """Per-user storage report. Reporting only; no quota is enforced."""

    storage_used: int = 0
    file_count: int = 0
    folder_count: int = 0
    shared_files_count: int = 0
    recent_activity: list[ActivityRecordBase] = field(default_factory=list)
