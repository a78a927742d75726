"""
Favorites persistence.

The favorites collection lives in a single named slot. Each save replaces
the whole slot with a self-describing JSON document:

    {"version": 1, "revision": 7, "items": [{"id": 5, "title": "...", "isSelected": false}]}

The bare JSON array written by earlier releases (no version marker) is
still readable and is treated as version 0.

Three gateways share the codec:
- SQLiteFavoritesStore: one row per slot, replaced in a single transaction
- JSONFileFavoritesStore: temp file + fsync + os.replace
- InMemoryFavoritesStore: a fake for tests and throwaway shelves
"""

import json
import logging
import os
import sqlite3
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .errors import DecodeError, PersistError
from .types import Item

logger = logging.getLogger(__name__)


FORMAT_VERSION = 1

# Slot key used by earlier releases' key-value store
DEFAULT_SLOT_KEY = "favoriteItems"


# -----------------------------------------------------------------------------
# Codec
# -----------------------------------------------------------------------------

def encode_items(items: Sequence[Item], revision: Optional[int] = None) -> str:
    """Encode an ordered favorites sequence as a versioned JSON document."""
    return json.dumps(
        {
            "version": FORMAT_VERSION,
            "revision": revision,
            "items": [item.to_dict() for item in items],
        },
        ensure_ascii=False,
    )


def decode_payload(payload: str | bytes) -> tuple[list[Item], Optional[int]]:
    """
    Decode a stored slot into (items, revision).

    Raises:
        DecodeError: If the payload is not valid JSON, declares a newer
            format version, or contains malformed item records.
    """
    # ValueError also covers integer literals past the digit limit;
    # RecursionError comes from very deeply nested arrays
    try:
        data = json.loads(payload)
    except (ValueError, UnicodeDecodeError, TypeError, RecursionError) as e:
        raise DecodeError(f"Favorites payload is not valid JSON: {e}") from e

    # Version 0: bare array of item records
    if isinstance(data, list):
        return [Item.from_dict(d) for d in data], None

    if not isinstance(data, dict):
        raise DecodeError(f"Favorites payload must be an object or array, got {type(data).__name__}")

    version = data.get("version", 0)
    if not isinstance(version, int) or isinstance(version, bool) or version > FORMAT_VERSION:
        raise DecodeError(f"Unsupported favorites format version: {version!r}")

    records = data.get("items")
    if not isinstance(records, list):
        raise DecodeError("Favorites payload has no item list")

    revision = data.get("revision")
    if revision is not None and (not isinstance(revision, int) or isinstance(revision, bool)):
        raise DecodeError(f"Favorites revision must be an integer: {revision!r}")

    return [Item.from_dict(d) for d in records], revision


def decode_items(payload: str | bytes) -> list[Item]:
    """Decode a stored slot into its ordered item list."""
    return decode_payload(payload)[0]


def _is_stale(revision: Optional[int], stored: Optional[int]) -> bool:
    """A stamped write older than the stored stamp must not land."""
    return revision is not None and stored is not None and revision < stored


# -----------------------------------------------------------------------------
# SQLite
# -----------------------------------------------------------------------------

class SQLiteFavoritesStore:
    """
    SQLite-backed favorites slot.

    A single ``slots`` table holds one row per key. Saves replace the row
    inside a BEGIN IMMEDIATE transaction, so a crash between saves leaves
    either the old or the new record, never a mix.
    """

    def __init__(self, db_path: Path, key: str = DEFAULT_SLOT_KEY):
        """
        Args:
            db_path: Path to SQLite database file
            key: Name of the favorites slot
        """
        self._db_path = db_path
        self._key = key
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None gives us manual transaction control
        # so we can use BEGIN IMMEDIATE for the revision check + replace
        self._conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False,
            isolation_level=None,
        )
        # Wait up to 5 seconds for locks instead of failing immediately
        self._conn.execute("PRAGMA busy_timeout=5000")
        # WAL for concurrent readers across processes
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS slots (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                revision INTEGER,
                updated_at TEXT NOT NULL
            )
        """)

    @property
    def path(self) -> Path:
        return self._db_path

    def load(self) -> Optional[list[Item]]:
        """Saved favorites, or None if the slot is empty or unreadable."""
        if self._conn is None:
            return None
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT payload FROM slots WHERE key = ?", (self._key,)
                ).fetchone()
            except sqlite3.DatabaseError as e:
                logger.warning("Favorites slot %r unreadable, starting empty: %s", self._key, e)
                return None

        if row is None:
            return None
        try:
            return decode_items(row[0])
        except DecodeError as e:
            logger.warning("Favorites slot %r failed to decode, starting empty: %s", self._key, e)
            return None

    def save(self, items: Sequence[Item], *, revision: Optional[int] = None) -> None:
        """Replace the favorites slot.

        Raises:
            PersistError: If the database is closed or the write fails.
        """
        if self._conn is None:
            raise PersistError("Favorites store is closed", revision=revision)

        payload = encode_items(items, revision)
        now = datetime.now(timezone.utc).isoformat()

        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    row = self._conn.execute(
                        "SELECT revision FROM slots WHERE key = ?", (self._key,)
                    ).fetchone()
                    if row is not None and _is_stale(revision, row[0]):
                        logger.debug(
                            "Discarding stale favorites write (revision %s < %s)",
                            revision, row[0],
                        )
                        self._conn.rollback()
                        return
                    self._conn.execute("""
                        INSERT OR REPLACE INTO slots (key, payload, revision, updated_at)
                        VALUES (?, ?, ?, ?)
                    """, (self._key, payload, revision, now))
                    self._conn.commit()
                except Exception:
                    self._conn.rollback()
                    raise
            except sqlite3.Error as e:
                raise PersistError(f"Failed to save favorites: {e}", revision=revision) from e

    def stored_revision(self) -> Optional[int]:
        """Revision stamp of the stored slot, if any."""
        if self._conn is None:
            return None
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT revision FROM slots WHERE key = ?", (self._key,)
                ).fetchone()
            except sqlite3.DatabaseError:
                return None
        return row[0] if row else None

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()


# -----------------------------------------------------------------------------
# JSON file
# -----------------------------------------------------------------------------

class JSONFileFavoritesStore:
    """
    Favorites slot stored as a JSON file.

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, which is atomic on POSIX and Windows.
    """

    def __init__(self, path: Path):
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Optional[tuple[list[Item], Optional[int]]]:
        try:
            payload = self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Favorites file %s unreadable, starting empty: %s", self._path, e)
            return None
        try:
            return decode_payload(payload)
        except DecodeError as e:
            logger.warning("Favorites file %s failed to decode, starting empty: %s", self._path, e)
            return None

    def load(self) -> Optional[list[Item]]:
        with self._lock:
            result = self._read()
        return result[0] if result is not None else None

    def save(self, items: Sequence[Item], *, revision: Optional[int] = None) -> None:
        payload = encode_items(items, revision)
        with self._lock:
            current = self._read()
            if current is not None and _is_stale(revision, current[1]):
                logger.debug(
                    "Discarding stale favorites write (revision %s < %s)",
                    revision, current[1],
                )
                return
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp = tempfile.mkstemp(
                    prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent,
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        f.write(payload)
                        f.flush()
                        os.fsync(f.fileno())
                    os.replace(tmp, self._path)
                except BaseException:
                    Path(tmp).unlink(missing_ok=True)
                    raise
            except OSError as e:
                raise PersistError(f"Failed to save favorites: {e}", revision=revision) from e

    def stored_revision(self) -> Optional[int]:
        with self._lock:
            result = self._read()
        return result[1] if result is not None else None

    def close(self) -> None:
        pass


# -----------------------------------------------------------------------------
# In-memory
# -----------------------------------------------------------------------------

class InMemoryFavoritesStore:
    """
    Favorites slot held in process memory.

    Stores the encoded payload, not the Item objects, so load() goes
    through the same codec as the durable gateways. Set ``fail_saves`` to
    make save() raise PersistError.
    """

    def __init__(self, payload: Optional[str | bytes] = None):
        self.payload = payload
        self.fail_saves = False
        self.save_calls = 0
        self._lock = threading.Lock()

    def load(self) -> Optional[list[Item]]:
        with self._lock:
            payload = self.payload
        if payload is None:
            return None
        try:
            return decode_items(payload)
        except DecodeError as e:
            logger.warning("In-memory favorites failed to decode, starting empty: %s", e)
            return None

    def save(self, items: Sequence[Item], *, revision: Optional[int] = None) -> None:
        with self._lock:
            self.save_calls += 1
            if self.fail_saves:
                raise PersistError("Simulated favorites save failure", revision=revision)
            if _is_stale(revision, self._stored_revision()):
                return
            self.payload = encode_items(items, revision)

    def _stored_revision(self) -> Optional[int]:
        if self.payload is None:
            return None
        try:
            return decode_payload(self.payload)[1]
        except DecodeError:
            return None

    def stored_revision(self) -> Optional[int]:
        with self._lock:
            return self._stored_revision()

    def close(self) -> None:
        pass
