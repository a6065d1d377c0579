"""Tests for the schema migrator."""

from pathlib import Path
from unittest.mock import patch

import aiosqlite
import pytest

from openmts.core.exceptions import DatabaseError
from openmts.infrastructure.storage.sqlite.migrations import migrator
from openmts.infrastructure.storage.sqlite.migrations.migrator import (
    Migration,
    discover_migrations,
    initialize_database,
)


async def _tables(db_path: Path) -> set[str]:
    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        return {row[0] for row in await cursor.fetchall()}


async def _versions(db_path: Path) -> list[int]:
    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute("SELECT version FROM schema_migrations ORDER BY version")
        return [row[0] for row in await cursor.fetchall()]


class TestDiscovery:
    def test_bundled_migrations(self):
        migrations = discover_migrations()
        assert migrations[0].version == 1
        assert migrations[0].label == "v001_inventory"

    def test_rejects_bad_filename(self, tmp_path: Path):
        (tmp_path / "v1_schema.sql").write_text("SELECT 1;")
        with pytest.raises(ValueError, match="v1_schema.sql"):
            discover_migrations(tmp_path)

    def test_orders_by_version(self, tmp_path: Path):
        for name in ("v010_later.sql", "v002_early.sql"):
            (tmp_path / name).write_text("SELECT 1;")
        assert [m.version for m in discover_migrations(tmp_path)] == [2, 10]


class TestInitializeDatabase:
    async def test_creates_tables_and_is_idempotent(self, tmp_path: Path):
        db_path = tmp_path / "inventory.db"

        first = await initialize_database(db_path, create_backup_before=False)
        assert [a.migration.label for a in first] == ["v001_inventory"]

        assert await initialize_database(db_path) == []
        assert not list(tmp_path.glob("*.backup_*"))

        assert {"material_batches", "batch_transactions", "schema_migrations"} <= await _tables(db_path)
        assert await _versions(db_path) == [1]

    async def test_failed_migration_rolls_back(self, tmp_path: Path):
        db_path = tmp_path / "inventory.db"
        await initialize_database(db_path, create_backup_before=False)

        broken = tmp_path / "v002_broken.sql"
        broken.write_text(
            "CREATE TABLE half_done (id INTEGER);\n"
            "INSERT INTO no_such_table VALUES (1);\n"
        )
        migrations = [*discover_migrations(), Migration.from_path(broken)]

        with patch.object(migrator, "discover_migrations", return_value=migrations):
            with pytest.raises(DatabaseError) as exc_info:
                await initialize_database(db_path)

        assert exc_info.value.details["operation"] == "migration v002_broken"
        assert "half_done" not in await _tables(db_path)
        assert await _versions(db_path) == [1]
