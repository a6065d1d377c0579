"""Pytest fixtures for SQLite storage tests."""

from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

import openmts.infrastructure.storage.sqlite.connection as conn_module
from openmts.infrastructure.storage.sqlite.connection import close_pool
from openmts.infrastructure.storage.sqlite.migrations import initialize_database


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def mock_settings(temp_db_path: Path):
    """Mock settings with temp database path."""
    mock = MagicMock()
    mock.storage.db_path = temp_db_path
    mock.storage.pool_size = 2
    mock.storage.busy_timeout = 5000
    return mock


@pytest.fixture
async def sqlite_db(temp_db_path: Path, mock_settings) -> AsyncGenerator[Path, None]:
    """Migrated temporary database, with the global pool pointed at it."""
    await initialize_database(temp_db_path, create_backup_before=False)

    conn_module._pool = None
    with patch.object(conn_module, "get_settings", return_value=mock_settings):
        try:
            yield temp_db_path
        finally:
            await close_pool()
