"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from row_forge.config import get_settings
from row_forge.core.connection import ConnectionConfig
from row_forge.mapping.cache import clear_caches


@pytest.fixture(autouse=True)
def _fresh_caches() -> Iterator[None]:
    """Every test starts with empty factory caches and default settings."""
    clear_caches()
    get_settings.cache_clear()
    yield
    clear_caches()
    get_settings.cache_clear()


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config."""
    return ConnectionConfig(driver="sqlite", database=":memory:")


@pytest.fixture
def sqlite_file_config(tmp_path: Path) -> ConnectionConfig:
    """SQLite file database; survives the connection being closed and reopened."""
    return ConnectionConfig(driver="sqlite", database=str(tmp_path / "test.db"))


@pytest.fixture
def tmp_sql_dir(tmp_path: Path) -> Path:
    """Temporary directory for SQL files."""
    return tmp_path / "sql"


@pytest.fixture
def write_sql(tmp_sql_dir: Path):
    """Helper to write SQL files into the temp directory.

    Usage:
        write_sql("employee/by_department.sql", "SELECT * FROM employee WHERE ...")
    """

    def _write(relative_path: str, content: str) -> Path:
        file_path = tmp_sql_dir / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
        return file_path

    return _write
