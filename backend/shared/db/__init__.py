"""SQLite database layer: connection management and schema."""

from shared.db.connection import Database

__all__ = [
    "Database",
]
