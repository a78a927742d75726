"""
Error types and error logging for bookshelf.

Logs full stack traces for debugging while showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class ShelfError(Exception):
    """Base class for bookshelf errors."""


class DecodeError(ShelfError):
    """Persisted favorites could not be decoded."""


class PersistError(ShelfError):
    """Writing the favorites slot failed.

    Non-fatal: the in-memory shelf stays authoritative and the next save
    writes the full favorites snapshot again.
    """

    def __init__(self, message: str, revision: int | None = None):
        super().__init__(message)
        self.revision = revision


class InvariantViolation(ShelfError):
    """Catalog and favorites no longer partition the seed ids."""


def _error_log_path(store_path: Optional[Path] = None) -> Path:
    """Resolve error log path, respecting --store and BOOKSHELF_STORE_PATH."""
    if store_path is not None:
        return Path(store_path) / "bookshelf-errors.log"
    store = os.environ.get("BOOKSHELF_STORE_PATH")
    if store:
        return Path(store) / "bookshelf-errors.log"
    return Path.home() / ".bookshelf" / "bookshelf-errors.log"


def log_exception(
    exc: Exception, context: str = "", store_path: Optional[Path] = None,
) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        store_path: Store directory chosen on the command line, if any

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(store_path)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path
