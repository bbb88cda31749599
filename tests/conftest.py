# tests/conftest.py
import asyncio
from types import SimpleNamespace
from typing import List, Optional

import pytest
from loguru import logger

from codescope.config import loader


class FakeFile:
    """File entry whose read can be delayed or made to fail."""
    is_file = True
    is_directory = False

    def __init__(self, name: str, content: str = "", delay: float = 0.0, error: Optional[Exception] = None):
        self.name = name
        self.content = content
        self.delay = delay
        self.error = error
        self.reads = 0

    async def read_all_text(self) -> str:
        self.reads += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.content

    def create_reader(self):
        raise NotADirectoryError(self.name)


class FakeReader:
    def __init__(self, directory: "FakeDir"):
        self.directory = directory
        self._index = 0

    async def read_next_batch(self):
        directory = self.directory
        directory.batch_calls += 1
        await asyncio.sleep(0)
        if directory.fail_at is not None and self._index == directory.fail_at:
            raise OSError(f"listing of {directory.name} broke")
        if self._index >= len(directory.batches):
            return []
        batch = directory.batches[self._index]
        self._index += 1
        return list(batch)


class FakeDir:
    """Directory entry that discloses its children in the given pages."""
    is_file = False
    is_directory = True

    def __init__(self, name: str, batches: Optional[List[list]] = None, fail_at: Optional[int] = None):
        self.name = name
        self.batches = batches or []
        self.fail_at = fail_at
        self.batch_calls = 0

    async def read_all_text(self) -> str:
        raise IsADirectoryError(self.name)

    def create_reader(self) -> FakeReader:
        return FakeReader(self)


class FakeSpecial:
    """Neither a file nor a directory (socket, device, dangling link...)."""
    is_file = False
    is_directory = False

    def __init__(self, name: str):
        self.name = name


@pytest.fixture
def fakes():
    return SimpleNamespace(File=FakeFile, Dir=FakeDir, Special=FakeSpecial)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keeps config and logs out of the real user profile."""
    home = tmp_path / "codescope_home"
    monkeypatch.setenv("CODESCOPE_HOME", str(home))
    for var in loader.ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)
    loader.reset_config_cache()
    yield home
    loader.reset_config_cache()


@pytest.fixture(autouse=True)
def offline_tokenizer(mocker):
    """Token counting falls back to estimation so tests never download encodings."""
    mocker.patch("codescope.core.token_counter._get_cached_encoder", return_value=None)


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI installs loguru sinks bound to the runner's streams; drop them after each test."""
    yield
    logger.remove()
