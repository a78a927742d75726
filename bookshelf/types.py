"""
Data types for the book shelf.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .errors import DecodeError


# Collection names
CATALOG = "catalog"
FAVORITES = "favorites"
COLLECTIONS = (CATALOG, FAVORITES)


def validate_collection(name: str) -> str:
    """Validate a collection name, returning it unchanged."""
    if name not in COLLECTIONS:
        raise ValueError(
            f"Unknown collection: {name!r} (expected one of {', '.join(COLLECTIONS)})"
        )
    return name


def other_collection(name: str) -> str:
    """The collection an item moves to when it leaves ``name``."""
    validate_collection(name)
    return FAVORITES if name == CATALOG else CATALOG


def split_title(title: str) -> tuple[str, Optional[str]]:
    """Split a "Title: Author" display string.

    Only splits when there is exactly one colon; anything else is returned
    whole with no author.
    """
    parts = title.split(":")
    if len(parts) == 2:
        return parts[0].strip(), parts[1].strip()
    return title, None


@dataclass(frozen=True, eq=False)
class Item:
    """
    A book in the catalog or favorites collection.

    Items are snapshots. Selection lives in the shelf's overlay and is
    copied onto ``is_selected`` when a snapshot is taken.

    Two items are equal when their ids match, regardless of title or
    selection.

    Attributes:
        id: Stable identifier assigned by the seed catalog
        title: Display text, "Title: Author" by convention
        is_selected: Transient bulk-selection flag
    """
    id: int
    title: str
    is_selected: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        mark = "*" if self.is_selected else " "
        return f"{mark} {self.id}: {self.title}"

    @property
    def display_title(self) -> str:
        return split_title(self.title)[0]

    @property
    def author(self) -> Optional[str]:
        return split_title(self.title)[1]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted record shape."""
        return {"id": self.id, "title": self.title, "isSelected": self.is_selected}

    @classmethod
    def from_dict(cls, d: Any) -> "Item":
        """Deserialize a persisted record.

        Raises:
            DecodeError: If the record is not a mapping with an integer id,
                a string title and (optionally) a boolean isSelected.
        """
        if not isinstance(d, dict):
            raise DecodeError(f"Item record must be an object, got {type(d).__name__}")
        id_ = d.get("id")
        title = d.get("title")
        selected = d.get("isSelected", False)
        # bool is an int subclass; reject it as an id
        if not isinstance(id_, int) or isinstance(id_, bool):
            raise DecodeError(f"Item id must be an integer: {id_!r}")
        if not isinstance(title, str):
            raise DecodeError(f"Item title must be a string: {title!r}")
        if not isinstance(selected, bool):
            raise DecodeError(f"Item isSelected must be a boolean: {selected!r}")
        return cls(id=id_, title=title, is_selected=selected)
