# codescope/core/editor.py
from dataclasses import replace
from typing import Optional, Protocol

from loguru import logger

from .models import FileNode
from .path_resolver import DEFAULT_LANGUAGE
from .store import FileStore


class EditorSurface(Protocol):
    """The text editor collaborator. It renders content and reports user edits back."""

    def show(self, content: str, language: str) -> None: ...

    def clear(self) -> None: ...


class EditorBinding:
    """Routes store state to the editor and editor edits back into the store."""

    def __init__(self, store: FileStore, surface: EditorSurface):
        self.store = store
        self.surface = surface

    def open(self, node: FileNode) -> bool:
        if not node.is_file:
            logger.debug(f"Not opening directory {node.path} in editor.")
            return False
        self.store.open_file(node)
        self.refresh()
        return True

    def refresh(self) -> None:
        """Pushes the active file to the surface, or clears it when there is none."""
        active = self.store.active_file
        if active is None:
            self.surface.clear()
            return
        self.surface.show(active.content or "", active.language or DEFAULT_LANGUAGE)

    def on_user_edit(self, new_content: Optional[str]) -> bool:
        """Handler for the editor's change notification."""
        if new_content is None:
            return False
        active = self.store.active_file
        if active is None:
            logger.debug("Edit received with no active file; ignoring.")
            return False
        return self.store.update_file(replace(active, content=new_content))

    def save(self) -> bool:
        active = self.store.active_file
        if active is None:
            return False
        return self.store.update_file(active)
