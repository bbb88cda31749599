# codescope/core/path_resolver.py
from typing import Dict

SEPARATOR = "/"
DEFAULT_LANGUAGE = "plaintext"

LANGUAGE_MAP: Dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "html": "html",
    "css": "css",
    "json": "json",
    "md": "markdown",
}


def join(parent_path: str, name: str) -> str:
    """Joins a parent path and a child name. Root nodes have path == name."""
    if not parent_path:
        return name
    return f"{parent_path}{SEPARATOR}{name}"


def language_of(name: str) -> str:
    """
    Derives the editor language tag from a file name's extension.
    Total function: unknown or missing extensions map to 'plaintext'.
    """
    if "." not in name:
        return DEFAULT_LANGUAGE
    ext = name.rsplit(".", 1)[1].lower()
    return LANGUAGE_MAP.get(ext, DEFAULT_LANGUAGE)
