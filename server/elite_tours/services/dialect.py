"""Dialect-specific INSERT constructs for upserts."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession):
    """
    Return the ``insert`` construct supporting ``ON CONFLICT`` for the bound dialect.

    Postgres in production, SQLite in tests; both accept the same
    ``on_conflict_do_update`` / ``on_conflict_do_nothing`` calls.
    """
    if db.bind.dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert
