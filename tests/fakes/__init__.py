"""In-memory fakes for testing Migrator without a database."""

from .migrations import FailingMigration, RecordingMigration
from .store import FakeConnection, FakeTransaction, FakeVersionStore

__all__ = [
    "FakeConnection",
    "FakeTransaction",
    "FakeVersionStore",
    "RecordingMigration",
    "FailingMigration",
]
