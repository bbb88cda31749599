# codescope/core/store.py
from typing import Iterator, List, Optional, Tuple

from loguru import logger

from .models import FileNode, NodeType, create_node


class FileStore:
    """
    Owns the imported trees and the active-file pointer for one session.

    Every mutation of the tree goes through these methods. They are all
    synchronous, so they never interleave with a suspended ingestion.
    Lookups that miss are no-ops reported through a False/None result.
    """

    def __init__(self):
        self._roots: List[FileNode] = []
        self._active_id: Optional[str] = None

    # --- Read-only views ---

    @property
    def roots(self) -> Tuple[FileNode, ...]:
        return tuple(self._roots)

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active_file(self) -> Optional[FileNode]:
        if self._active_id is None:
            return None
        return self.find(self._active_id)

    def iter_nodes(self) -> Iterator[FileNode]:
        for root in self._roots:
            yield from root.walk()

    def iter_files(self) -> Iterator[FileNode]:
        return (node for node in self.iter_nodes() if node.is_file)

    def find(self, node_id: str) -> Optional[FileNode]:
        for node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None

    def find_by_path(self, path: str) -> Optional[FileNode]:
        # Several roots may share a name; the earliest import wins
        for node in self.iter_nodes():
            if node.path == path:
                return node
        return None

    def content_of(self, path: str) -> Optional[str]:
        node = self.find_by_path(path)
        if node is None or not node.is_file:
            return None
        return node.content

    # --- Mutations ---

    def open_file(self, node: FileNode) -> None:
        if self._active_id == node.id:
            return
        logger.debug(f"Opening {node.path}")
        self._active_id = node.id

    def update_file(self, node: FileNode) -> bool:
        """Replaces only the content of the stored node with the same id."""
        target = self.find(node.id)
        if target is None:
            logger.debug(f"update_file: no node with id {node.id} ({node.path}); ignoring.")
            return False
        if not target.is_file:
            logger.warning(f"update_file: {target.path} is a directory; ignoring.")
            return False
        target.content = node.content
        return True

    def insert_root(self, node: FileNode) -> None:
        logger.info(f"Adding root: {node.path} ({node.type.value})")
        self._roots.append(node)

    def remove_node(self, node_id: str) -> bool:
        """Removes a node (and its subtree) wherever it sits. Clears the active file if it was inside."""
        removed = self._detach(self._roots, node_id)
        if removed is None:
            logger.debug(f"remove_node: no node with id {node_id}; ignoring.")
            return False
        if self._active_id is not None and any(n.id == self._active_id for n in removed.walk()):
            logger.debug(f"Active file was inside removed {removed.path}; clearing active.")
            self._active_id = None
        logger.info(f"Removed {removed.path}")
        return True

    def create_file(self, name: str, content: str = "", parent_id: Optional[str] = None) -> Optional[FileNode]:
        """Creates an empty (or seeded) file as a new root or inside a directory."""
        if parent_id is None:
            node = create_node(name, NodeType.FILE, "", content)
            self.insert_root(node)
            return node
        parent = self.find(parent_id)
        if parent is None or not parent.is_dir:
            logger.warning(f"create_file: parent {parent_id} missing or not a directory.")
            return None
        node = create_node(name, NodeType.FILE, parent.path, content)
        parent.children.append(node) # type: ignore[union-attr]
        logger.info(f"Created {node.path}")
        return node

    def clear(self) -> None:
        self._roots.clear()
        self._active_id = None

    def _detach(self, nodes: List[FileNode], node_id: str) -> Optional[FileNode]:
        for index, node in enumerate(nodes):
            if node.id == node_id:
                return nodes.pop(index)
            if node.children:
                found = self._detach(node.children, node_id)
                if found is not None:
                    return found
        return None
