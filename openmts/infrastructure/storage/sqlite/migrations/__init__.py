"""Versioned SQLite schema migrations."""

from openmts.infrastructure.storage.sqlite.migrations.migrator import (
    AppliedMigration,
    Migration,
    discover_migrations,
    initialize_database,
)

__all__ = [
    "AppliedMigration",
    "Migration",
    "discover_migrations",
    "initialize_database",
]
