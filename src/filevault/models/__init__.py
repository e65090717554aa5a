"""SQLModel database models for filevault."""

from filevault.models.activity import ActivityRecord, ActivityRecordBase
from filevault.models.files import FileNode, FileNodeBase
from filevault.models.grants import PermissionGrant, PermissionGrantBase
from filevault.models.users import User, UserBase

__all__ = [
    "ActivityRecord",
    "ActivityRecordBase",
    "FileNode",
    "FileNodeBase",
    "PermissionGrant",
    "PermissionGrantBase",
    "User",
    "UserBase",
]
