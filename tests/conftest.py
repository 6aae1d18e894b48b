"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from loguru import logger
from sqlalchemy import Connection, Engine

from migrator.core.config import DatabaseConfig
from migrator.store.database import create_engine
from migrator.store.versions import VersionStore


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for tests."""
    return tmp_path / "test.db"


@pytest.fixture
def fixtures_dir() -> Path:
    """Provide path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sql_dir(fixtures_dir: Path) -> Path:
    """Provide the directory of well-formed SQL migration files."""
    return fixtures_dir / "migrations"


@pytest.fixture
def db_config(test_db_path: Path) -> DatabaseConfig:
    """Provide a SQLite database configuration."""
    return DatabaseConfig(url=f"sqlite:///{test_db_path}")


@pytest.fixture
def engine(db_config: DatabaseConfig) -> Engine:
    """Provide an engine with the tracking schema attached."""
    engine = create_engine(db_config)
    yield engine
    engine.dispose()


@pytest.fixture
def connection(engine: Engine) -> Connection:
    """Provide an open connection with no transaction in progress."""
    with engine.connect() as connection:
        yield connection


@pytest.fixture
def store(connection: Connection) -> VersionStore:
    """Provide a VersionStore on the test connection."""
    return VersionStore(connection)


@pytest.fixture
def loguru_messages() -> list:
    """Capture loguru records as (level, message) tuples."""
    messages: list[tuple[str, str]] = []
    handler_id = logger.add(
        lambda message: messages.append(
            (message.record["level"].name, message.record["message"])
        ),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)
