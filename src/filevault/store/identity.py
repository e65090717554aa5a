"""IdentityService — user records and username resolution.

Stateless service that receives the user model at construction
and a session at call time.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from sqlalchemy import delete as sa_delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from .exceptions import ConflictError, NotFoundError, ValidationError
from .types import Role
from .utils import utc_now

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filevault.models.users import UserBase

logger = logging.getLogger(__name__)

_password_hasher = PasswordHasher()

UPDATABLE_FIELDS = frozenset({"username", "password_hash", "display_name", "role"})


def hash_password(password: str) -> str:
    """Hash *password* with argon2 for storage in ``password_hash``."""
    return _password_hasher.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """Return True if *password* matches the stored argon2 *password_hash*."""
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def username_key(username: str) -> str:
    """Case-folded form used for uniqueness and lookup."""
    return username.strip().lower()


class IdentityService:
    """Manages user accounts.

    Constructor receives the concrete user model so callers can use
    custom SQLModel subclasses with different table names.
    """

    def __init__(self, user_model: type[UserBase]) -> None:
        self._user_model = user_model

    @property
    def user_model(self) -> type[UserBase]:
        return self._user_model

    @staticmethod
    def _validate_username(username: str | None) -> str:
        cleaned = (username or "").strip()
        if not cleaned:
            raise ValidationError("Username cannot be empty", username=username)
        return cleaned

    @staticmethod
    def _validate_role(role: str | Role) -> str:
        try:
            return Role(role).value
        except ValueError:
            raise ValidationError(f"Invalid role: {role!r}", role=role) from None

    async def create(
        self,
        session: AsyncSession,
        username: str,
        password_hash: str,
        display_name: str = "",
        role: str = "viewer",
    ) -> UserBase:
        """Create a user. Flushes but does not commit.

        Raises ``ConflictError`` if the username is taken, compared
        case-insensitively. A concurrent duplicate caught by the unique
        index also surfaces as ``ConflictError``; the session must then
        be rolled back.
        """
        username = self._validate_username(username)
        role = self._validate_role(role)
        key = username_key(username)
        if await self._find_by_key(session, key) is not None:
            raise ConflictError(f"Username already exists: {username!r}", username=username)

        user = self._user_model(
            username=username,
            username_key=key,
            password_hash=password_hash,
            display_name=display_name or username,
            role=role,
        )
        session.add(user)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Username already exists: {username!r}", username=username
            ) from e
        logger.debug("Created user %s (%s)", user.id, username)
        return user

    async def find(self, session: AsyncSession, user_id: str) -> UserBase | None:
        """Get a user by id, or None."""
        return await session.get(self._user_model, user_id)

    async def get(self, session: AsyncSession, user_id: str) -> UserBase:
        """Get a user by id. Raises ``NotFoundError`` if absent."""
        user = await self.find(session, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}", user_id=user_id)
        return user

    async def _find_by_key(self, session: AsyncSession, key: str) -> UserBase | None:
        model = self._user_model
        result = await session.execute(select(model).where(model.username_key == key))
        return result.scalar_one_or_none()

    async def get_by_username(self, session: AsyncSession, username: str) -> UserBase | None:
        """Resolve *username* case-insensitively."""
        return await self._find_by_key(session, username_key(username or ""))

    async def update(self, session: AsyncSession, user_id: str, **patch: Any) -> UserBase:
        """Apply *patch* to a user and refresh ``updated_at``.

        Accepts ``username``, ``password_hash``, ``display_name`` and
        ``role``. Renaming re-checks uniqueness.
        """
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown user fields: {sorted(unknown)}", user_id=user_id
            )

        user = await self.get(session, user_id)

        if "username" in patch:
            username = self._validate_username(patch["username"])
            key = username_key(username)
            existing = await self._find_by_key(session, key)
            if existing is not None and existing.id != user.id:
                raise ConflictError(
                    f"Username already exists: {username!r}", username=username
                )
            user.username = username
            user.username_key = key
        if "role" in patch:
            user.role = self._validate_role(patch["role"])
        if "display_name" in patch:
            user.display_name = patch["display_name"] or user.username
        if "password_hash" in patch:
            user.password_hash = patch["password_hash"]

        user.updated_at = utc_now()
        session.add(user)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Username already exists: {user.username!r}", username=user.username
            ) from e
        return user

    async def delete(self, session: AsyncSession, user_id: str) -> None:
        """Remove the user record only. Raises ``NotFoundError`` if absent.

        Cascading cleanup of files and grants is the caller's job and
        must run first, in the same transaction.
        """
        model = self._user_model
        result = await session.execute(sa_delete(model).where(model.id == user_id))
        if result.rowcount == 0:  # type: ignore[union-attr]
            raise NotFoundError(f"User not found: {user_id}", user_id=user_id)
        logger.debug("Deleted user %s", user_id)

    async def list_all(self, session: AsyncSession) -> list[UserBase]:
        """All users ordered by username."""
        model = self._user_model
        result = await session.execute(select(model).order_by(model.username_key))
        return list(result.scalars().all())
