"""Common test fixtures for matrix-index tests."""

import os
from pathlib import Path

import pytest

from matrix_index.config import Settings
from matrix_index.store import LocalIndexStore

ENV_KEYS = (
    "MATRIX_HOMESERVER",
    "MATRIX_USER",
    "MATRIX_PASSWORD",
    "MATRIX_ROOM_IDS",
    "DATABASE_TYPE",
    "SQLITE_DB",
    "DATABASE_ECHO",
    "LOGGING__LEVEL",
    "LOGGING__MAX_SIZE_MB",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep environment variables from leaking between tests."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test files."""
    return tmp_path


@pytest.fixture
def test_settings(temp_dir: Path, monkeypatch) -> Settings:
    """Create test settings pointing at a throwaway SQLite file."""
    monkeypatch.setenv("MATRIX_HOMESERVER", "https://test.matrix.org")
    monkeypatch.setenv("MATRIX_USER", "@test:matrix.org")
    monkeypatch.setenv("MATRIX_PASSWORD", "test_password")
    monkeypatch.setenv("MATRIX_ROOM_IDS", "!test1:matrix.org,!test2:matrix.org")
    monkeypatch.setenv("DATABASE_TYPE", "sqlite")
    monkeypatch.setenv("SQLITE_DB", str(temp_dir / "profile" / "index.db"))
    monkeypatch.setenv("LOGGING__LEVEL", "DEBUG")

    settings = Settings()
    settings.sync_state_file = str(temp_dir / "test_sync_state.json")
    settings.logging.file_path = str(temp_dir / "logs" / "test.log")
    return settings


@pytest.fixture
def store(test_settings: Settings):
    """An index store backed by a fresh SQLite file."""
    index = LocalIndexStore.from_settings(test_settings)
    index.ensure_schema()
    yield index
    index.dispose()


def make_message(event_id: str, timestamp: int, **fields) -> dict:
    """A message record as the dispatch layer sends it."""
    record = {
        "eventId": event_id,
        "sender": "@a:matrix.org",
        "timestamp": timestamp,
        "tokens": [],
        "tags": [],
        "reactions": [],
        "hasMedia": False,
        "mediaTypes": [],
    }
    record.update(fields)
    return record


def make_media(media_id: str, event_id: str, timestamp: int, **fields) -> dict:
    record = {
        "id": media_id,
        "eventId": event_id,
        "type": "image",
        "sender": "@a:matrix.org",
        "timestamp": timestamp,
    }
    record.update(fields)
    return record
