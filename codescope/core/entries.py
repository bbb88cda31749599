# codescope/core/entries.py
"""
Directory-entry sources consumed by the ingestor.

An entry is either a file, whose text is read in one async call, or a
directory, whose children are only disclosed page by page through a
stateful reader. `LocalEntry` adapts the real filesystem to that shape.
"""
import asyncio
import fnmatch
import os
import stat
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from loguru import logger

from ..config.schema import AppConfig


@runtime_checkable
class DirectoryReader(Protocol):
    async def read_next_batch(self) -> Sequence["Entry"]:
        """Returns the next page of children; an empty page ends the listing. May raise."""
        ...


@runtime_checkable
class Entry(Protocol):
    name: str

    @property
    def is_file(self) -> bool: ...

    @property
    def is_directory(self) -> bool: ...

    async def read_all_text(self) -> str: ...

    def create_reader(self) -> DirectoryReader: ...


# --- Local filesystem adapter ---

class LocalEntry:
    """Entry backed by a path on disk. Symlinks and special files are neither file nor directory."""

    def __init__(self, path: Path, settings: AppConfig):
        self.path = path
        self.name = path.name or str(path)
        self.settings = settings
        try:
            mode = os.lstat(path).st_mode
        except OSError as e:
            logger.warning(f"Could not stat {path}: {e}")
            mode = 0
        self._is_file = stat.S_ISREG(mode)
        self._is_directory = stat.S_ISDIR(mode)

    def __repr__(self) -> str:
        return f"LocalEntry({str(self.path)!r})"

    @property
    def is_file(self) -> bool:
        return self._is_file

    @property
    def is_directory(self) -> bool:
        return self._is_directory

    def _read_text_sync(self) -> str:
        raw = self.path.read_bytes()
        for enc in self.settings.text_encodings:
            try:
                return raw.decode(enc)
            except (UnicodeDecodeError, LookupError):
                continue
        logger.debug(f"No configured encoding decoded {self.path.name}; replacing undecodable bytes.")
        return raw.decode("utf-8", errors="replace")

    async def read_all_text(self) -> str:
        if not self._is_file:
            raise IsADirectoryError(str(self.path))
        return await asyncio.to_thread(self._read_text_sync)

    def create_reader(self) -> "LocalDirectoryReader":
        if not self._is_directory:
            raise NotADirectoryError(str(self.path))
        return LocalDirectoryReader(self.path, self.settings)


class LocalDirectoryReader:
    """Pages a directory's scandir listing, `listing_page_size` entries at a time."""

    def __init__(self, path: Path, settings: AppConfig):
        self.path = path
        self.settings = settings
        self.page_size = settings.listing_page_size
        self._names: Optional[List[str]] = None
        self._offset = 0

    def _is_ignored(self, name: str) -> bool:
        for pattern in self.settings.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                logger.trace(f"Ignoring '{name}' due to pattern '{pattern}'")
                return True
        return False

    def _list_sync(self) -> List[str]:
        with os.scandir(self.path) as it:
            return [entry.name for entry in it if not self._is_ignored(entry.name)]

    async def read_next_batch(self) -> List[LocalEntry]:
        if self._names is None:
            self._names = await asyncio.to_thread(self._list_sync)
        page = self._names[self._offset:self._offset + self.page_size]
        self._offset += len(page)
        return [LocalEntry(self.path / name, self.settings) for name in page]


def local_entry(path: Path, settings: Optional[AppConfig] = None) -> Optional[LocalEntry]:
    """Wraps a local path as an Entry, or returns None if nothing exists there."""
    if not os.path.lexists(path):
        logger.warning(f"Path does not exist: {path}")
        return None
    return LocalEntry(Path(path).resolve(), settings or AppConfig())
