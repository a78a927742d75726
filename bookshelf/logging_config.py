"""
Logging configuration for bookshelf.

Quiet by default for CLI use; --verbose turns on debug output.
"""

import logging
import sys
import warnings


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose output.

    This silences:
    - Python warnings (deprecation, etc.)
    - INFO/DEBUG chatter from bookshelf on stderr

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    if quiet:
        warnings.filterwarnings("ignore")
        logging.getLogger("bookshelf").setLevel(logging.WARNING)
    else:
        warnings.filterwarnings("default")
        logging.getLogger("bookshelf").setLevel(logging.NOTSET)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    # Re-enable warnings
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("bookshelf").setLevel(logging.DEBUG)


def configure_ops_log(store_path):
    """Configure a persistent operations log for a bookshelf store.

    Writes to {store_path}/bookshelf-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed on close().
    """
    from logging.handlers import RotatingFileHandler
    from pathlib import Path

    store_path = Path(store_path)
    store_path.mkdir(parents=True, exist_ok=True)
    log_path = store_path / "bookshelf-ops.log"
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    shelf_logger = logging.getLogger("bookshelf")
    shelf_logger.addHandler(handler)
    # Ensure bookshelf logger allows INFO through even in quiet mode
    if shelf_logger.level == logging.NOTSET or shelf_logger.level > logging.INFO:
        shelf_logger.setLevel(logging.INFO)

    return handler
