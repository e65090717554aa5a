"""VaultConfig — constructor-level settings for the vault facades."""

from __future__ import annotations

from dataclasses import dataclass

from filevault.store.database import DEFAULT_DATABASE_URL


@dataclass(frozen=True)
class VaultConfig:
    """Settings shared by :class:`FileVaultAsync` and :class:`FileVault`.

    Attributes:
        database_url: SQLAlchemy async URL. The default is a volatile
            in-memory SQLite database; use ``sqlite+aiosqlite:///vault.db``
            or a PostgreSQL URL for a durable store.
        echo: Echo SQL statements through the ``sqlalchemy.engine`` logger.
        root_folder_name: Name of the container provisioned for every new user.
        purge_activity_on_user_delete: Also remove a deleted user's own
            activity records. By default they are retained.
        recent_activity_limit: Number of records in ``UsageStats.recent_activity``.
        sqlite_busy_timeout_ms: ``PRAGMA busy_timeout`` for file-backed SQLite.
    """

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    root_folder_name: str = "Root"
    purge_activity_on_user_delete: bool = False
    recent_activity_limit: int = 10
    sqlite_busy_timeout_ms: int = 5000
