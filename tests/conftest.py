"""pytest fixtures for agentic memory tests."""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

from agentic_memory.config import get_settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep a developer's MEMORY_* environment and .env file out of the settings under test."""
    for name in list(os.environ):
        if name.startswith("MEMORY_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr("agentic_memory.config.load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture(autouse=True)
def clear_settings_cache(isolated_env):
    """Reload settings for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def scope_id() -> str:
    """Provide a sample index name."""
    return "test-index"


@pytest.fixture
def mock_repository():
    """Mock MemoryRepository with successful defaults."""
    repository = MagicMock()
    repository.bulk_upsert = AsyncMock(return_value=[])
    repository.mark_superseded = AsyncMock(return_value=0)
    repository.increment_cycles = AsyncMock(return_value=0)
    return repository


class SleepRecorder:
    """Async stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
