"""
Catalog/favorites reconciliation.

The Shelf owns two ordered collections of seed items, ``catalog`` and
``favorites``, and keeps them a partition of the seed: every seed id is
in exactly one of them. Items are moved, never copied or dropped.

Selection for bulk moves is an overlay (one id set per collection) owned
by the shelf. Snapshots copy it onto ``Item.is_selected``; moving an item
clears it on both sides.

After any favorites change the full favorites snapshot is handed to the
save queue. A failed save is reported as a warning; the in-memory state
stays authoritative and the next save rewrites everything.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from .catalog import seed_items
from .errors import InvariantViolation, PersistError
from .events import SnapshotRelay
from .persistence import SaveQueue
from .protocol import FavoritesGatewayProtocol
from .types import (
    CATALOG,
    COLLECTIONS,
    FAVORITES,
    Item,
    other_collection,
    validate_collection,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveResult:
    """
    Outcome of a move between collections.

    Attributes:
        moved: Ids that changed collection, in move order
        missing: Requested ids that were not in the source collection
        warning: Save failure, if the favorites write failed (non-fatal)
        revision: Revision stamp of the save, None if nothing moved
    """
    moved: tuple[int, ...] = ()
    missing: tuple[int, ...] = ()
    warning: Optional[PersistError] = None
    revision: Optional[int] = None

    @property
    def changed(self) -> bool:
        return bool(self.moved)

    @property
    def ok(self) -> bool:
        return not self.missing and self.warning is None


@dataclass(frozen=True)
class SelectionResult:
    """Outcome of a selection toggle."""
    id: int
    collection: str
    found: bool
    selected: bool = False


class Shelf:
    """
    Reconciliation store for the book catalog and the favorites list.

    Quick start::

        with Shelf.open() as shelf:
            shelf.move_to_favorites(5)
            shelf.toggle_selection(1, "catalog")
            shelf.bulk_move_selected("catalog")

    All public methods are serialized by one re-entrant lock, so the
    shelf has a single writer even if callers share it between threads.
    Subscribers are called while that lock is held.
    """

    def __init__(
        self,
        gateway: FavoritesGatewayProtocol,
        *,
        seed: Optional[Iterable[Item]] = None,
        async_persist: bool = False,
    ) -> None:
        """
        Args:
            gateway: Persistence for the favorites slot
            seed: Full item universe in catalog order (default: built-in catalog)
            async_persist: Save on a background worker instead of inline
        """
        self._gateway = gateway
        self._lock = threading.RLock()
        self._ops_handler: Optional[logging.Handler] = None
        self.config = None

        self._items: dict[int, Item] = {}
        for item in (seed_items() if seed is None else seed):
            if item.id in self._items:
                raise ValueError(f"Duplicate seed id: {item.id}")
            self._items[item.id] = Item(id=item.id, title=item.title)

        self._favorites: list[int] = []
        for item in gateway.load() or []:
            if item.id not in self._items:
                logger.warning("Dropping restored favorite with unknown id %d", item.id)
                continue
            if item.id in self._favorites:
                continue
            self._favorites.append(item.id)
        favorite_ids = set(self._favorites)
        self._catalog: list[int] = [id for id in self._items if id not in favorite_ids]

        self._selection: dict[str, set[int]] = {name: set() for name in COLLECTIONS}
        self._revision = gateway.stored_revision() or 0
        self._queue = SaveQueue(gateway, background=async_persist)
        self._relays: dict[str, SnapshotRelay[tuple[Item, ...]]] = {
            name: SnapshotRelay(name, self._build_snapshot(name)) for name in COLLECTIONS
        }

        self.check_invariants()
        logger.debug(
            "Shelf ready: %d in catalog, %d favorites",
            len(self._catalog), len(self._favorites),
        )

    @classmethod
    def open(cls, store_path: Optional[Path] = None) -> "Shelf":
        """Open the shelf stored at ``store_path`` (or the default store).

        Creates the store directory and its config on first use and turns
        on the store's operations log.
        """
        from .backend import create_gateway
        from .config import load_or_create_config, resolve_store_path
        from .logging_config import configure_ops_log

        path = resolve_store_path(store_path)
        config = load_or_create_config(path)
        shelf = cls(create_gateway(config), async_persist=config.async_persist)
        shelf.config = config
        shelf._ops_handler = configure_ops_log(path)
        return shelf

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @property
    def catalog(self) -> tuple[Item, ...]:
        return self.snapshot(CATALOG)

    @property
    def favorites(self) -> tuple[Item, ...]:
        return self.snapshot(FAVORITES)

    @property
    def seed_ids(self) -> frozenset[int]:
        return frozenset(self._items)

    @property
    def revision(self) -> int:
        """Revision stamp of the most recent favorites save."""
        return self._revision

    @property
    def last_persist_error(self) -> Optional[PersistError]:
        """Failure of the latest save attempt, None once a save succeeds."""
        return self._queue.last_error

    def snapshot(self, collection: str) -> tuple[Item, ...]:
        """Current items of a collection with selection applied."""
        validate_collection(collection)
        with self._lock:
            return self._build_snapshot(collection)

    def get(self, id: int) -> Optional[Item]:
        """Look up an item in whichever collection holds it."""
        with self._lock:
            location = self.location(id)
            if location is None:
                return None
            return self._make_item(id, location)

    def location(self, id: int) -> Optional[str]:
        """Name of the collection holding ``id``, None for unknown ids."""
        with self._lock:
            for name in COLLECTIONS:
                if id in self._ids(name):
                    return name
            return None

    def is_favorite(self, id: int) -> bool:
        with self._lock:
            return id in self._favorites

    def selected_ids(self, collection: str) -> tuple[int, ...]:
        """Selected ids of a collection, in collection order."""
        validate_collection(collection)
        with self._lock:
            selected = self._selection[collection]
            return tuple(id for id in self._ids(collection) if id in selected)

    def subscribe(
        self,
        collection: str,
        callback: Callable[[tuple[Item, ...]], None],
    ) -> Callable[[], None]:
        """Receive the full snapshot of ``collection`` now and on every change.

        Returns:
            A function that removes the subscription
        """
        validate_collection(collection)
        with self._lock:
            return self._relays[collection].subscribe(callback)

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def move_to_favorites(self, id: int) -> MoveResult:
        """Move one item from the catalog to the end of favorites.

        Ids not in the catalog (already favorites, or unknown) are
        reported in ``missing`` and nothing changes.
        """
        return self._move((id,), CATALOG)

    def move_to_catalog(self, id: int) -> MoveResult:
        """Move one item from favorites back to the end of the catalog."""
        return self._move((id,), FAVORITES)

    def toggle_selection(self, id: int, collection: str) -> SelectionResult:
        """Flip the selection flag of ``id`` within one collection.

        Selection is never persisted.
        """
        validate_collection(collection)
        with self._lock:
            if id not in self._ids(collection):
                return SelectionResult(id=id, collection=collection, found=False)
            selected = self._selection[collection]
            if id in selected:
                selected.discard(id)
            else:
                selected.add(id)
            self._publish(collection)
            return SelectionResult(
                id=id, collection=collection, found=True, selected=id in selected,
            )

    def clear_all_selections(self, collection: str) -> int:
        """Unselect everything in a collection.

        Returns:
            Number of items that were selected
        """
        validate_collection(collection)
        with self._lock:
            count = len(self._selection[collection])
            if count:
                self._selection[collection].clear()
                self._publish(collection)
            return count

    def bulk_move_selected(self, from_collection: str) -> MoveResult:
        """Move every selected item of ``from_collection`` to the other one.

        Items move in collection order and the favorites are saved once
        for the whole batch.
        """
        validate_collection(from_collection)
        with self._lock:
            ids = self.selected_ids(from_collection)
            if not ids:
                return MoveResult()
            return self._move(ids, from_collection)

    def flush(self, timeout: Optional[float] = None) -> Optional[PersistError]:
        """Wait for queued saves; return the outstanding failure, if any."""
        return self._queue.flush(timeout)

    def check_invariants(self) -> None:
        """
        Verify catalog and favorites still partition the seed.

        Raises:
            InvariantViolation: On overlap, duplicates, lost or foreign ids,
                or selection on an id outside its collection.
        """
        with self._lock:
            catalog = set(self._catalog)
            favorites = set(self._favorites)
            if len(catalog) != len(self._catalog) or len(favorites) != len(self._favorites):
                raise InvariantViolation("Duplicate id within a collection")
            overlap = catalog & favorites
            if overlap:
                raise InvariantViolation(f"Ids in both collections: {sorted(overlap)}")
            seed = set(self._items)
            if catalog | favorites != seed:
                lost = seed - catalog - favorites
                foreign = (catalog | favorites) - seed
                raise InvariantViolation(
                    f"Collections do not cover the seed (lost {sorted(lost)}, foreign {sorted(foreign)})"
                )
            for name in COLLECTIONS:
                stray = self._selection[name] - set(self._ids(name))
                if stray:
                    raise InvariantViolation(f"Selected ids not in {name}: {sorted(stray)}")

    def close(self) -> None:
        """Drain pending saves and release the gateway."""
        self._queue.close()
        self._gateway.close()
        for relay in self._relays.values():
            relay.clear()
        if self._ops_handler is not None:
            self._ops_handler.close()
            logging.getLogger("bookshelf").removeHandler(self._ops_handler)
            self._ops_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _ids(self, collection: str) -> list[int]:
        return self._catalog if collection == CATALOG else self._favorites

    def _make_item(self, id: int, collection: str) -> Item:
        base = self._items[id]
        return Item(
            id=base.id, title=base.title,
            is_selected=id in self._selection[collection],
        )

    def _build_snapshot(self, collection: str) -> tuple[Item, ...]:
        return tuple(self._make_item(id, collection) for id in self._ids(collection))

    def _publish(self, *collections: str) -> None:
        for name in collections:
            self._relays[name].accept(self._build_snapshot(name))

    def _move(self, ids: Iterable[int], source: str) -> MoveResult:
        target = other_collection(source)
        with self._lock:
            source_ids = self._ids(source)
            target_ids = self._ids(target)
            moved: list[int] = []
            missing: list[int] = []
            for id in ids:
                if id not in source_ids:
                    missing.append(id)
                    continue
                source_ids.remove(id)
                self._selection[source].discard(id)
                self._selection[target].discard(id)
                if id not in target_ids:
                    target_ids.append(id)
                moved.append(id)

            if missing:
                logger.debug("Not in %s, left unchanged: %s", source, missing)
            if not moved:
                return MoveResult(missing=tuple(missing))

            self.check_invariants()
            logger.info("Moved %s from %s to %s", moved, source, target)
            self._publish(source, target)

            revision, warning = self._persist()
            return MoveResult(
                moved=tuple(moved),
                missing=tuple(missing),
                warning=warning,
                revision=revision,
            )

    def _persist(self) -> tuple[int, Optional[PersistError]]:
        """Submit the full favorites snapshot; one call per mutation."""
        self._revision += 1
        future = self._queue.submit(self._build_snapshot(FAVORITES), self._revision)
        warning = future.result() if future.done() else None
        return self._revision, warning
