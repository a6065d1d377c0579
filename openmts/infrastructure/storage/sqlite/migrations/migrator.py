"""
Schema migrations for the inventory database.

Migrations are ``vNNN_<name>.sql`` files next to this module. They are applied
in version order, each inside its own transaction together with its row in
``schema_migrations``, so a failing script leaves no trace. Before touching an
existing database, ``initialize_database`` takes an online backup through
SQLite's backup API and restores it if anything goes wrong.
"""

import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from openmts.config import get_logger, get_settings
from openmts.core.exceptions import DatabaseError

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_FILENAME = re.compile(r"v(?P<version>\d{3})_(?P<name>[a-z0-9_]+)\.sql")


@dataclass(frozen=True)
class Migration:
    """One schema script."""

    version: int
    name: str
    path: Path

    @classmethod
    def from_path(cls, path: Path) -> "Migration":
        match = _FILENAME.fullmatch(path.name)
        if match is None:
            raise ValueError(f"Invalid migration filename: {path.name}")
        return cls(version=int(match["version"]), name=match["name"], path=path)

    @property
    def label(self) -> str:
        return f"v{self.version:03d}_{self.name}"


@dataclass(frozen=True)
class AppliedMigration:
    migration: Migration
    duration_ms: int


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    """Bundled migrations in version order. Stray ``v*.sql`` files are an error."""
    migrations = sorted(
        (Migration.from_path(path) for path in directory.glob("v*.sql")),
        key=lambda m: m.version,
    )
    versions = [m.version for m in migrations]
    if len(versions) != len(set(versions)):
        raise ValueError(f"Duplicate migration versions in {directory}")
    return migrations


async def _applied_versions(conn: aiosqlite.Connection) -> set[int]:
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            applied_at TEXT NOT NULL
        )
        """
    )
    cursor = await conn.execute("SELECT version FROM schema_migrations")
    return {row[0] for row in await cursor.fetchall()}


async def _apply(conn: aiosqlite.Connection, migration: Migration) -> AppliedMigration:
    started = time.perf_counter()
    script = migration.path.read_text(encoding="utf-8")
    try:
        # executescript runs outside any transaction, so open one in the script
        await conn.executescript(f"BEGIN IMMEDIATE;\n{script}")
        await conn.execute(
            "INSERT INTO schema_migrations (version, name, applied_at) VALUES (?, ?, ?)",
            (migration.version, migration.name, datetime.now(UTC).isoformat()),
        )
        await conn.execute("COMMIT")
    except aiosqlite.Error as e:
        if conn.in_transaction:
            await conn.execute("ROLLBACK")
        raise DatabaseError(f"migration {migration.label}", str(e)) from e

    applied = AppliedMigration(migration, int((time.perf_counter() - started) * 1000))
    logger.info("migration_applied", migration=migration.label, duration_ms=applied.duration_ms)
    return applied


async def _copy_database(source: Path, target: Path) -> None:
    async with aiosqlite.connect(source) as src, aiosqlite.connect(target) as dst:
        await src.backup(dst)


async def initialize_database(
    db_path: Path | None = None,
    create_backup_before: bool = True,
) -> list[AppliedMigration]:
    """
    Bring the inventory database up to the newest schema.

    Returns:
        The migrations applied by this call, empty if the schema was current.

    Raises:
        DatabaseError: If a migration fails. The backup, if one was taken,
            has been restored by then.
    """
    db_path = db_path or get_settings().storage.db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)

    backup_path = None
    if create_backup_before and db_path.exists():
        stamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        backup_path = db_path.with_name(f"{db_path.stem}.backup_{stamp}{db_path.suffix}")
        await _copy_database(db_path, backup_path)

    applied: list[AppliedMigration] = []
    try:
        async with aiosqlite.connect(db_path, isolation_level=None) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            done = await _applied_versions(conn)
            for migration in discover_migrations():
                if migration.version not in done:
                    applied.append(await _apply(conn, migration))
    except Exception as e:
        logger.error("database_initialization_failed", db_path=str(db_path), error=str(e))
        if backup_path is not None:
            await _copy_database(backup_path, db_path)
            logger.warning("database_restored", backup_path=str(backup_path))
        raise

    if backup_path is not None:
        backup_path.unlink()
    logger.info("database_ready", db_path=str(db_path), applied=len(applied))
    return applied
