"""
Serialized favorites saves.

Every favorites mutation submits the full favorites snapshot stamped with
a revision. Saves for one shelf never interleave: in synchronous mode they
run inline, in background mode a single worker thread drains them in FIFO
order. Either way a snapshot older than the newest submitted one is
skipped, and the gateway itself discards stamped writes older than what
it already holds, so a slow earlier save can't overwrite a later one.

There are no delta writes. The next successful save repairs any earlier
failure.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Optional, Sequence

from .errors import PersistError
from .protocol import FavoritesGatewayProtocol
from .types import Item

logger = logging.getLogger(__name__)


class SaveQueue:
    """
    Single-writer save pipeline for one favorites gateway.

    ``submit`` returns a Future that resolves to the PersistError of that
    save, or None on success (including a skipped stale snapshot). The
    Future never raises.
    """

    def __init__(self, gateway: FavoritesGatewayProtocol, *, background: bool = False):
        self._gateway = gateway
        self._background = background
        self._executor: Optional[ThreadPoolExecutor] = None
        if background:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="bookshelf-save",
            )
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        self._latest_submitted: Optional[int] = None
        self._written_revision: Optional[int] = None
        self._last_error: Optional[PersistError] = None

    @property
    def background(self) -> bool:
        return self._background

    @property
    def last_error(self) -> Optional[PersistError]:
        """Failure of the most recent save attempt, cleared by a later success."""
        with self._lock:
            return self._last_error

    @property
    def written_revision(self) -> Optional[int]:
        with self._lock:
            return self._written_revision

    def submit(self, items: Sequence[Item], revision: int) -> "Future[Optional[PersistError]]":
        """Queue a full favorites snapshot for saving."""
        snapshot = tuple(items)
        with self._lock:
            if self._latest_submitted is None or revision > self._latest_submitted:
                self._latest_submitted = revision

        if self._executor is None:
            future: Future = Future()
            future.set_result(self._write(snapshot, revision))
            return future

        future = self._executor.submit(self._write, snapshot, revision)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _write(self, items: tuple[Item, ...], revision: int) -> Optional[PersistError]:
        with self._lock:
            if self._latest_submitted is not None and revision < self._latest_submitted:
                logger.debug(
                    "Skipping favorites revision %d, revision %d is queued",
                    revision, self._latest_submitted,
                )
                return None
            healing = self._last_error is not None

        try:
            self._gateway.save(items, revision=revision)
        except PersistError as e:
            error = e
        except OSError as e:
            error = PersistError(f"Failed to save favorites: {e}", revision=revision)
            error.__cause__ = e
        else:
            with self._lock:
                self._written_revision = revision
                self._last_error = None
            if healing:
                logger.info("Favorites saved at revision %d after earlier failure", revision)
            else:
                logger.debug("Favorites saved at revision %d (%d items)", revision, len(items))
            return None

        if error.revision is None:
            error.revision = revision
        with self._lock:
            self._last_error = error
        logger.warning("Favorites save failed at revision %d: %s", revision, error)
        return error

    def flush(self, timeout: Optional[float] = None) -> Optional[PersistError]:
        """Wait for queued saves to finish.

        Returns:
            The outstanding save failure, if the last attempt failed.
        """
        with self._lock:
            pending = list(self._pending)
        if pending:
            done, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning("Timed out waiting for %d favorites save(s)", len(not_done))
        return self.last_error

    def close(self) -> None:
        """Drain pending saves and stop the worker."""
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
