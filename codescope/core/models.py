# codescope/core/models.py
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from .path_resolver import join, language_of


class NodeType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class FileNode:
    """Represents a file or directory in the imported tree."""
    id: str
    name: str
    path: str # Separator-joined path from the implicit root
    type: NodeType
    content: Optional[str] = None # Files only
    language: Optional[str] = None # Files only, fixed at creation
    children: Optional[List['FileNode']] = None # Directories only, disclosure order

    @property
    def is_dir(self) -> bool:
        return self.type == NodeType.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.type == NodeType.FILE

    def walk(self) -> Iterator['FileNode']:
        """Yields this node and all descendants, depth-first pre-order."""
        stack: List[FileNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def to_dict(self) -> dict:
        data = {"id": self.id, "name": self.name, "path": self.path, "type": self.type.value}
        if self.is_file:
            data["language"] = self.language
            data["content"] = self.content
        else:
            data["children"] = [child.to_dict() for child in self.children or []]
        return data


def new_node_id() -> str:
    return str(uuid.uuid4())


def create_node(name: str, type: NodeType, parent_path: str = "", content: str = "") -> FileNode:
    """
    Builds a node with a fresh id and a path composed from parent_path.
    Directories ignore `content` and start with an empty children list.
    """
    node_type = NodeType(type)
    path = join(parent_path, name)
    if node_type == NodeType.DIRECTORY:
        return FileNode(id=new_node_id(), name=name, path=path, type=node_type, children=[])
    return FileNode(id=new_node_id(), name=name, path=path, type=node_type,
                    content=content, language=language_of(name))


@dataclass
class ContextFile:
    """One file of the effective context handed to an analysis request."""
    path: str
    content: str


@dataclass
class IngestReport:
    """Counters collected during one ingestion run."""
    files: int = 0
    directories: int = 0
    dropped: List[str] = field(default_factory=list) # Paths of nodes that failed to read
    partial_listings: List[str] = field(default_factory=list) # Directories whose listing ended on an error

    @property
    def is_complete(self) -> bool:
        return not self.dropped and not self.partial_listings
