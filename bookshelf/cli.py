"""
CLI interface for the book shelf.

Usage:
    bookshelf list
    bookshelf list --favorites
    bookshelf add 1 3
    bookshelf remove 3
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .logging_config import configure_quiet_mode, enable_debug_mode
from .shelf import MoveResult, Shelf
from .types import CATALOG, FAVORITES, Item


# Configure quiet mode by default
# Set BOOKSHELF_VERBOSE=1 to enable debug mode via environment
if os.environ.get("BOOKSHELF_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"bookshelf {version('bookshelf')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value


def _get_store_override() -> Optional[Path]:
    return _store_override


app = typer.Typer(
    name="bookshelf",
    help="Browse the book catalog and keep a favorites list.",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode=None,
)


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------

def _format_item_line(item: Item) -> str:
    """One line per book: id, title, author in parentheses when known."""
    author = item.author
    text = f"{item.display_title} ({author})" if author else item.display_title
    return f"{item.id:>3}  {text}"


def _format_items(items: tuple[Item, ...], as_json: bool = False, empty: str = "") -> str:
    if as_json:
        return json.dumps([item.to_dict() for item in items], ensure_ascii=False)
    if not items:
        return empty
    return "\n".join(_format_item_line(item) for item in items)


def _format_move(result: MoveResult, target: str, as_json: bool = False) -> str:
    if as_json:
        return json.dumps({
            "moved": list(result.moved),
            "missing": list(result.missing),
            "warning": str(result.warning) if result.warning else None,
            "revision": result.revision,
        })
    if not result.moved:
        return f"Nothing moved to {target}."
    ids = ", ".join(str(id) for id in result.moved)
    return f"Moved {len(result.moved)} to {target}: {ids}"


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="BOOKSHELF_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Browse the book catalog and keep a favorites list."""
    # No subcommand: show the catalog
    if ctx.invoked_subcommand is None:
        with _get_shelf() as shelf:
            typer.echo(_format_items(
                shelf.catalog, as_json=_get_json_output(), empty="Catalog is empty.",
            ))


def _get_shelf() -> Shelf:
    """Open the shelf, handling errors gracefully."""
    try:
        return Shelf.open(_get_store_override())
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _bulk_move(ids: list[int], source: str, target: str) -> None:
    """Select ``ids`` in ``source`` and confirm one bulk move."""
    with _get_shelf() as shelf:
        for id in dict.fromkeys(ids):
            shelf.toggle_selection(id, source)
        result = shelf.bulk_move_selected(source)
        # Ids that failed to select are reported the same way as a bulk miss
        missing = [id for id in dict.fromkeys(ids) if id not in result.moved]
        shelf.clear_all_selections(source)
        result = MoveResult(
            moved=result.moved,
            missing=tuple(missing),
            warning=result.warning or shelf.flush(),
            revision=result.revision,
        )

    typer.echo(_format_move(result, target, as_json=_get_json_output()))
    if result.missing and not _get_json_output():
        typer.echo(
            f"Not in {source}: {', '.join(str(id) for id in result.missing)}", err=True,
        )
    if result.warning is not None:
        typer.echo(f"Warning: favorites not saved: {result.warning}", err=True)
    if result.missing and not result.moved:
        raise typer.Exit(1)


@app.command("list")
def list_items(
    favorites: Annotated[bool, typer.Option(
        "--favorites", "-f",
        help="List favorites instead of the catalog",
    )] = False,
):
    """List the catalog, or the favorites with --favorites."""
    with _get_shelf() as shelf:
        if favorites:
            items = shelf.favorites
            empty = "No favorites yet."
        else:
            items = shelf.catalog
            empty = "Catalog is empty."
    typer.echo(_format_items(items, as_json=_get_json_output(), empty=empty))


@app.command()
def add(
    ids: Annotated[list[int], typer.Argument(help="Catalog ids to add")],
):
    """
    Move books from the catalog into favorites.

    \b
    Examples:
        bookshelf add 5
        bookshelf add 1 3 7
    """
    _bulk_move(ids, CATALOG, FAVORITES)


@app.command()
def remove(
    ids: Annotated[list[int], typer.Argument(help="Favorite ids to remove")],
):
    """
    Move books from favorites back to the catalog.

    \b
    Examples:
        bookshelf remove 5
    """
    _bulk_move(ids, FAVORITES, CATALOG)


@app.command()
def status():
    """Show collection sizes and where the store lives."""
    with _get_shelf() as shelf:
        info = {
            "store": str(shelf.config.path) if shelf.config else None,
            "backend": shelf.config.backend if shelf.config else None,
            "catalog": len(shelf.catalog),
            "favorites": len(shelf.favorites),
            "revision": shelf.revision,
        }
    if _get_json_output():
        typer.echo(json.dumps(info))
        return
    typer.echo(f"Store:     {info['store']} ({info['backend']})")
    typer.echo(f"Catalog:   {info['catalog']}")
    typer.echo(f"Favorites: {info['favorites']}")
    typer.echo(f"Revision:  {info['revision']}")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(
            e, context="bookshelf CLI", store_path=_get_store_override(),
        )
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
