"""Dialect-aware SQL helpers — atomic grant upsert."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

UPSERT_DIALECTS = ("sqlite", "postgresql")


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or the raw dialect name."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name in ("postgresql", "postgres"):
        return "postgresql"
    return name


def session_dialect(session: AsyncSession) -> str:
    """Return the dialect name of the engine *session* is bound to."""
    return get_dialect(session.get_bind())


def supports_upsert(dialect: str) -> bool:
    return dialect in UPSERT_DIALECTS


async def upsert_row(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    conflict_keys: list[str],
    update_keys: list[str],
) -> int:
    """Single-statement ``INSERT ... ON CONFLICT`` into *model*'s table.

    On conflict only *update_keys* are overwritten, so columns the caller
    did not supply keep their stored values. With no update keys the
    statement degrades to ``ON CONFLICT DO NOTHING``. Returns rowcount.

    Only SQLite and PostgreSQL are supported; check ``supports_upsert``
    first and fall back to select-then-write elsewhere.
    """
    if dialect == "postgresql":
        from sqlalchemy.dialects import postgresql as dialect_module
    elif dialect == "sqlite":
        from sqlalchemy.dialects import sqlite as dialect_module
    else:
        raise ValueError(f"Upsert is not supported for dialect {dialect!r}")

    stmt = dialect_module.insert(model).values(**values)

    update_cols = {k: v for k, v in values.items() if k in update_keys}
    if update_cols:
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_keys,
            set_=update_cols,
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_keys)

    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]
