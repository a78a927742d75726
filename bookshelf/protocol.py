"""
Protocol definitions for the shelf's persistence collaborators.

The shelf only talks to its favorites slot through this contract, so any
durable key-value or file store with atomic replace semantics can stand in
(SQLite locally, a JSON file, or an in-memory fake for tests).
"""

from typing import Optional, Protocol, Sequence, runtime_checkable

from .types import Item


@runtime_checkable
class FavoritesGatewayProtocol(Protocol):
    """
    Load/save pair for the single persisted favorites slot.

    Implemented by:
    - SQLiteFavoritesStore (default local backend)
    - JSONFileFavoritesStore
    - InMemoryFavoritesStore (tests)
    """

    def load(self) -> Optional[list[Item]]:
        """Previously saved favorites, or None if absent or undecodable.

        Must not raise on malformed data.
        """
        ...

    def save(
        self,
        items: Sequence[Item],
        *,
        revision: Optional[int] = None,
    ) -> None:
        """Overwrite the whole slot.

        Writes stamped with a revision older than the stored one are
        discarded. Raises PersistError on failure.
        """
        ...

    def stored_revision(self) -> Optional[int]:
        """Revision stamp of the stored slot, None if absent or unstamped."""
        ...

    def close(self) -> None: ...
