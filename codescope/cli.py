# codescope/cli.py

import fnmatch
import json
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from .services.logging import setup_logging
from .services.async_utils import run_sync
from .config.loader import get_config
from .core.analysis import AnalysisSession, HttpAnalysisService
from .core.context_selection import ContextSelection
from .core.errors import AnalysisRequestFailure
from .core.ingestor import DirectoryIngestor, ingest_path
from .core.models import FileNode
from .core.store import FileStore
from . import __version__

app = typer.Typer(help="codescope - import a folder, pick context files, ask questions about the code.")

def version_callback(value: bool):
    if value:
        print(f"codescope {__version__}")
        raise typer.Exit()

@app.callback()
def main_options(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: Optional[bool] = typer.Option(None, "--version", callback=version_callback, is_eager=True, help="Show version and exit."),
):
    """ Main callback to set up logging """
    log_level = "DEBUG" if verbose else "WARNING"
    setup_logging(level=log_level, verbose=verbose)
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose


def _import_root(path: Path, store: FileStore) -> FileNode:
    """Ingests `path` into `store` or exits with an error."""
    config = get_config()
    ingestor = DirectoryIngestor.from_config(config)
    root = run_sync(ingest_path(path, config, ingestor))
    if root is None:
        logger.error(f"Nothing could be imported from {path}.")
        raise typer.Exit(code=1)
    store.insert_root(root)
    report = ingestor.report
    if not report.is_complete:
        typer.echo(f"Warning: {len(report.dropped)} unreadable file(s), "
                   f"{len(report.partial_listings)} partially listed folder(s).", err=True)
    return root


def _render_tree(node: FileNode, depth: int = 0) -> List[str]:
    marker = "/" if node.is_dir else ""
    suffix = "" if node.is_dir else f"  [{node.language}]"
    lines = [f"{'  ' * depth}{node.name}{marker}{suffix}"]
    for child in node.children or []:
        lines.extend(_render_tree(child, depth + 1))
    return lines


@app.command()
def tree(
    path: Path = typer.Argument(..., exists=True, readable=True, resolve_path=True, help="File or folder to import."),
    as_json: bool = typer.Option(False, "--json", help="Dump the imported tree as JSON."),
):
    """Imports a folder and prints the resulting tree."""
    store = FileStore()
    root = _import_root(path, store)
    if as_json:
        typer.echo(json.dumps(root.to_dict(), indent=2))
    else:
        typer.echo("\n".join(_render_tree(root)))


@app.command()
def ask(
    path: Path = typer.Argument(..., exists=True, readable=True, resolve_path=True, help="File or folder to import."),
    question: str = typer.Argument(..., help="Question to ask about the selected code."),
    include: Optional[List[str]] = typer.Option(None, "--include", "-i", help="Glob patterns (on tree paths, e.g. 'proj/src/*.ts') of files to add to the context."),
    active: Optional[str] = typer.Option(None, "--active", "-a", help="Tree path of the file to treat as the open file."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the assembled prompt instead of sending it."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the prompt (dry run) or answer to this file.", resolve_path=True),
):
    """Imports a folder, selects context files and asks the analysis service a question."""
    config = get_config()
    store = FileStore()
    _import_root(path, store)

    selection = ContextSelection()
    for node in store.iter_files():
        if include and any(fnmatch.fnmatch(node.path, pattern) for pattern in include):
            selection.add_to_context(node)

    if active:
        active_node = store.find_by_path(active)
        if active_node is None or not active_node.is_file:
            logger.error(f"Active file not found in imported tree: {active}")
            raise typer.Exit(code=1)
        store.open_file(active_node)

    logger.info(f"Selected {len(selection)} context file(s).")
    session = AnalysisSession(HttpAnalysisService(config.analysis), config.max_context_tokens, config.preamble)

    if dry_run:
        try:
            text = session.prepare_prompt(question, selection, store)
        except AnalysisRequestFailure as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(code=1)
    else:
        reply = run_sync(session.ask(question, selection, store))
        if reply is None:
            typer.echo("Question is empty.", err=True)
            raise typer.Exit(code=1)
        text = reply.content

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        typer.echo(f"Written to {output}")
    else:
        typer.echo(text)


if __name__ == "__main__":
    app()
