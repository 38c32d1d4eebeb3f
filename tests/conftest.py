"""Pytest configuration and fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from drive.app import create_app
from drive.config import Settings
from drive.events.types import Event
from drive.storage import FileStore


class RecordingNotifier:
    """Notifier that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def broadcast(self, event: Event) -> bool:
        self.events.append(event)
        return True

    @property
    def types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Empty store root inside the test's temporary directory."""
    path = tmp_path / "public"
    path.mkdir()
    return path


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Create a recording notifier."""
    return RecordingNotifier()


@pytest.fixture
def store(root: Path, notifier: RecordingNotifier) -> FileStore:
    """Create a file store wired to a recording notifier."""
    return FileStore(root, notifier=notifier)


@pytest.fixture
def settings(root: Path) -> Settings:
    """Create test settings."""
    return Settings(
        host="127.0.0.1",
        port=8000,
        debug=True,
        root_dir=str(root),
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client with the app lifespan running."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
