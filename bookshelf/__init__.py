"""
Bookshelf

A fixed book catalog with a persisted favorites list.

Quick Start:
    from bookshelf import Shelf

    shelf = Shelf.open()  # uses ~/.bookshelf/
    shelf.move_to_favorites(5)
    shelf.toggle_selection(1, "catalog")
    shelf.bulk_move_selected("catalog")

CLI Usage:
    bookshelf list
    bookshelf add 1 3
    bookshelf remove 3 --json

Default Store:
    ~/.bookshelf/ (created automatically).
    Override with BOOKSHELF_STORE_PATH or an explicit path argument.

Environment Variables:
    BOOKSHELF_STORE_PATH  - Override default store location
    BOOKSHELF_VERBOSE     - Set to 1 for debug logging on stderr
"""

from .errors import DecodeError, InvariantViolation, PersistError, ShelfError
from .favorites_store import (
    InMemoryFavoritesStore,
    JSONFileFavoritesStore,
    SQLiteFavoritesStore,
)
from .shelf import MoveResult, SelectionResult, Shelf
from .types import CATALOG, FAVORITES, Item

__version__ = "0.1.0"
__all__ = [
    "Shelf",
    "Item",
    "MoveResult",
    "SelectionResult",
    "CATALOG",
    "FAVORITES",
    "SQLiteFavoritesStore",
    "JSONFileFavoritesStore",
    "InMemoryFavoritesStore",
    "ShelfError",
    "DecodeError",
    "PersistError",
    "InvariantViolation",
]
