"""
Pytest configuration for datamapper.

Provides fixtures for:
- Connection settings (in-memory and file-backed)
- Settings cache isolation
- Live MySQL access for integration tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import pytest

from datamapper.config import DatabaseConfig, get_settings
from datamapper.errors import ConnectionFailure, DataMapperError


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Clear the cached Settings around each test so env overrides apply.
    """
    monkeypatch.delenv("DB_CONNECT_ATTEMPTS", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db_config() -> DatabaseConfig:
    """
    Connection settings that are never used to reach a real server.
    """
    return DatabaseConfig(host="db1", user="root", password="pw", database="shop")


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """
    A valid `key=value` connection file without a port.
    """
    path = tmp_path / "db_config.ini"
    path.write_text(
        "# connection settings\n"
        "host = db1\n"
        "user=root\n"
        "\n"
        "password= pw \n"
        "database=shop\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(scope="session")
def live_config() -> DatabaseConfig:
    """
    Settings for the integration MySQL server.

    Can be overridden via environment variables in CI or local testing.
    """
    return DatabaseConfig(
        host=os.getenv("DB_HOST", "127.0.0.1"),
        port=os.getenv("DB_PORT", "3306"),
        user=os.getenv("DB_USER", "root"),
        password=os.getenv("DB_PASSWORD", "root"),
        database=os.getenv("DB_NAME", "datamapper_test"),
        driver=os.getenv("DB_DRIVER", "mysql"),
        connect_timeout=5,
    )


@pytest.fixture(scope="session")
def live_schema(live_config: DatabaseConfig) -> DatabaseConfig:
    """
    Ensure the sample tables exist; skip when the server is unreachable.
    """
    from scripts.seed_samples import _apply_schema

    try:
        _apply_schema(live_config)
    except ConnectionFailure as exc:
        pytest.skip(f"Database not available for integration tests: {exc}")
    except DataMapperError as exc:
        pytest.fail(f"Could not create sample schema: {exc}")
    return live_config
