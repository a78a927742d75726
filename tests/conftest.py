"""
Shared pytest fixtures for bookshelf tests.

Provides in-memory and failure-injecting gateways so most tests never
touch the filesystem.
"""

import threading
import time
from pathlib import Path
from typing import Optional, Sequence

import pytest

from bookshelf.errors import PersistError
from bookshelf.favorites_store import InMemoryFavoritesStore, encode_items
from bookshelf.shelf import Shelf
from bookshelf.types import Item


class RecordingGateway(InMemoryFavoritesStore):
    """In-memory gateway that keeps every saved snapshot."""

    def __init__(self, payload=None):
        super().__init__(payload)
        self.saved: list[tuple[list[int], Optional[int]]] = []

    def save(self, items: Sequence[Item], *, revision: Optional[int] = None) -> None:
        super().save(items, revision=revision)
        self.saved.append(([item.id for item in items], revision))


class FlakyGateway(InMemoryFavoritesStore):
    """Gateway that fails the first ``fail_count`` saves, then succeeds."""

    def __init__(self, fail_count: int = 1):
        super().__init__()
        self.fail_count = fail_count

    def save(self, items: Sequence[Item], *, revision: Optional[int] = None) -> None:
        if self.save_calls < self.fail_count:
            self.save_calls += 1
            raise PersistError("Disk full (simulated)", revision=revision)
        super().save(items, revision=revision)


class SlowGateway(InMemoryFavoritesStore):
    """Gateway whose saves block until released, for ordering tests."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()
        self.order: list[Optional[int]] = []

    def save(self, items: Sequence[Item], *, revision: Optional[int] = None) -> None:
        self.release.wait(timeout=5)
        time.sleep(0.01)
        self.order.append(revision)
        super().save(items, revision=revision)


def small_seed(*ids: int) -> list[Item]:
    """Seed items titled "Book N: Author N"."""
    return [Item(id=i, title=f"Book {i}: Author {i}") for i in ids]


def payload_for(*ids: int, revision: Optional[int] = None) -> str:
    """Encoded favorites slot holding built-in seed ids."""
    from bookshelf.catalog import SEED_BOOKS
    titles = dict(SEED_BOOKS)
    return encode_items([Item(id=i, title=titles[i]) for i in ids], revision)


@pytest.fixture
def gateway():
    """Fresh recording in-memory gateway."""
    return RecordingGateway()


@pytest.fixture
def shelf(gateway):
    """Shelf over the built-in 20-book catalog with empty favorites."""
    s = Shelf(gateway)
    yield s
    s.close()


@pytest.fixture
def store_path(tmp_path, monkeypatch) -> Path:
    """Isolated store directory, also exported as BOOKSHELF_STORE_PATH."""
    path = tmp_path / "store"
    monkeypatch.setenv("BOOKSHELF_STORE_PATH", str(path))
    return path
