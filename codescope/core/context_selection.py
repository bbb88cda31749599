# codescope/core/context_selection.py
from typing import Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from loguru import logger

from .models import ContextFile, FileNode

if TYPE_CHECKING:
    from .store import FileStore


class ContextSelection:
    """Ordered set of file paths the user marked for analysis."""

    def __init__(self):
        # dict keeps insertion order
        self._paths: Dict[str, None] = {}

    @property
    def paths(self) -> Tuple[str, ...]:
        return tuple(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: str) -> bool:
        return path in self._paths

    def contains(self, path: str) -> bool:
        return path in self._paths

    def add_to_context(self, node: FileNode) -> bool:
        if not node.is_file:
            logger.warning(f"Refusing to add directory {node.path} to context.")
            return False
        if node.path in self._paths:
            return False
        self._paths[node.path] = None
        logger.debug(f"Added to context: {node.path}")
        return True

    def remove_from_context(self, path: str) -> bool:
        if path not in self._paths:
            return False
        del self._paths[path]
        logger.debug(f"Removed from context: {path}")
        return True

    def clear(self) -> None:
        self._paths.clear()

    def effective_context(self, active_path: Optional[str],
                          content_of: Callable[[str], Optional[str]]) -> List[ContextFile]:
        """
        The selection minus the active file, in selection order.
        Paths whose content can no longer be resolved are left out.
        """
        files: List[ContextFile] = []
        for path in self._paths:
            if path == active_path:
                continue
            content = content_of(path)
            if content is None:
                logger.debug(f"Context path no longer resolves, skipping: {path}")
                continue
            files.append(ContextFile(path=path, content=content))
        return files

    def prune(self, store: "FileStore") -> List[str]:
        """Drops selected paths that no longer name a file in `store`. Returns the dropped paths."""
        stale = [path for path in self._paths if store.content_of(path) is None]
        for path in stale:
            del self._paths[path]
        if stale:
            logger.info(f"Pruned {len(stale)} stale context path(s).")
        return stale
