# codescope/core/ingestor.py
import asyncio
import weakref
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from loguru import logger

from ..config.schema import AppConfig
from ..services.async_utils import gather_ordered, limited, make_limiter
from .entries import Entry, local_entry
from .errors import ListingPageFailure, NodeReadFailure
from .models import FileNode, IngestReport, NodeType, create_node
from .path_resolver import join


class _IngestRun:
    """State of one ingest() call: its own report, plus the ingestor's shared read limiter."""

    def __init__(self, limiter: Optional[asyncio.Semaphore]):
        self.limiter = limiter
        self.report = IngestReport()

    async def ingest_entry(self, entry: Optional[Entry], parent_path: str) -> Optional[FileNode]:
        if entry is None:
            return None
        try:
            if entry.is_file:
                return await self._ingest_file(entry, parent_path)
            if entry.is_directory:
                return await self._ingest_directory(entry, parent_path)
        except Exception as e:
            path = join(parent_path, getattr(entry, "name", "<unnamed>"))
            logger.warning(f"Could not ingest '{path}': {e!r}. Dropping node.")
            self.report.dropped.append(path)
            return None
        logger.debug(f"Skipping entry that is neither file nor directory: {join(parent_path, entry.name)}")
        return None

    async def _ingest_file(self, entry: Entry, parent_path: str) -> Optional[FileNode]:
        path = join(parent_path, entry.name)
        try:
            content = await limited(entry.read_all_text(), self.limiter)
        except Exception as e:
            failure = NodeReadFailure(path, e)
            logger.warning(f"{failure}. Dropping node.")
            self.report.dropped.append(path)
            return None
        self.report.files += 1
        return create_node(entry.name, NodeType.FILE, parent_path, content)

    async def _ingest_directory(self, entry: Entry, parent_path: str) -> FileNode:
        # Node exists (with empty children) before its listing is read
        node = create_node(entry.name, NodeType.DIRECTORY, parent_path)
        self.report.directories += 1

        entries = await self._read_all_entries(entry, node.path)
        children = await gather_ordered(self.ingest_entry(child, node.path) for child in entries)
        node.children = [child for child in children if child is not None]
        logger.trace(f"Directory {node.path}: {len(node.children)}/{len(entries)} children kept")
        return node

    async def _read_all_entries(self, entry: Entry, path: str) -> List[Entry]:
        """Drains the directory reader until it returns an empty page or fails."""
        accumulated: List[Entry] = []
        pages = 0
        try:
            reader = entry.create_reader()
            while True:
                batch: Sequence[Entry] = await reader.read_next_batch()
                if not batch:
                    break
                pages += 1
                accumulated.extend(batch)
        except Exception as e:
            failure = ListingPageFailure(path, pages, e)
            logger.warning(f"{failure}. Keeping {len(accumulated)} entries read so far.")
            self.report.partial_listings.append(path)
        return accumulated


class DirectoryIngestor:
    """
    Materializes an entry source into a FileNode tree.

    Sibling subtrees are ingested concurrently; children keep the order the
    listing disclosed them in. A file that cannot be read, or an entry that
    fails in any other way, is dropped, and a listing page that fails ends
    that directory's listing early. None of these aborts the rest of the import.

    `max_concurrency` bounds simultaneous file reads across every run on this
    ingestor. Directory recursion is not throttled, so a parent never holds a
    slot its children wait for.
    """

    def __init__(self, max_concurrency: Optional[int] = None):
        self.max_concurrency = max_concurrency
        self.report = IngestReport()
        # Semaphores bind to an event loop, so keep one per loop
        self._limiters: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Semaphore]" = weakref.WeakKeyDictionary()
        logger.debug(f"Ingestor initialized (max_concurrency={max_concurrency or 'unbounded'})")

    @classmethod
    def from_config(cls, settings: AppConfig) -> "DirectoryIngestor":
        return cls(max_concurrency=settings.ingest_concurrency)

    def _limiter(self) -> Optional[asyncio.Semaphore]:
        if not self.max_concurrency:
            return None
        loop = asyncio.get_running_loop()
        limiter = self._limiters.get(loop)
        if limiter is None:
            limiter = make_limiter(self.max_concurrency)
            self._limiters[loop] = limiter
        return limiter

    async def ingest_with_report(self, entry: Optional[Entry],
                                 parent_path: str = "") -> Tuple[Optional[FileNode], IngestReport]:
        """Ingests one entry and its subtree. Returns the node (or None) and this run's report."""
        run = _IngestRun(self._limiter())
        if entry is None:
            logger.warning("Ingest called without an entry; nothing to import.")
            return None, run.report
        logger.info(f"[Ingest] Starting for: {join(parent_path, entry.name)}")
        node = await run.ingest_entry(entry, parent_path)
        report = run.report
        if node is None:
            logger.warning(f"[Ingest] Nothing imported for: {entry.name}")
        else:
            logger.info(f"[Ingest] Finished {node.path}: {report.files} files, "
                        f"{report.directories} directories, {len(report.dropped)} dropped, "
                        f"{len(report.partial_listings)} partial listings.")
        return node, report

    async def ingest(self, entry: Optional[Entry], parent_path: str = "") -> Optional[FileNode]:
        """
        Ingests one entry and its whole subtree. Returns None when there is nothing to insert.
        `report` is set to the report of the run that finished last.
        """
        node, report = await self.ingest_with_report(entry, parent_path)
        self.report = report
        return node

async def ingest_file_upload(name: str, read_text: Callable[[], Awaitable[str]],
                             parent_path: str = "") -> FileNode:
    """
    Builds a file node for a single uploaded file.
    Read errors propagate: there is no parent listing to absorb them.
    """
    content = await read_text()
    logger.info(f"Imported single file: {join(parent_path, name)} ({len(content)} chars)")
    return create_node(name, NodeType.FILE, parent_path, content)


async def ingest_path(path: Path, settings: Optional[AppConfig] = None,
                      ingestor: Optional[DirectoryIngestor] = None) -> Optional[FileNode]:
    """Ingests a local file or folder as a new root node."""
    settings = settings or AppConfig()
    ingestor = ingestor or DirectoryIngestor.from_config(settings)
    return await ingestor.ingest(local_entry(path, settings))
