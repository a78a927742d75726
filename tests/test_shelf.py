"""
Tests for the Shelf reconciliation store.

Covers the partition invariant, single and bulk moves, selection overlay,
cold-start seeding and change notification.
"""

import random

import pytest

from bookshelf import CATALOG, FAVORITES, Item, Shelf
from bookshelf.errors import InvariantViolation
from bookshelf.favorites_store import InMemoryFavoritesStore, decode_items
from tests.conftest import RecordingGateway, payload_for, small_seed


def _ids(items):
    return [item.id for item in items]


def _assert_partition(shelf: Shelf):
    catalog = set(_ids(shelf.catalog))
    favorites = set(_ids(shelf.favorites))
    assert not catalog & favorites
    assert catalog | favorites == set(shelf.seed_ids)


# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

class TestColdStart:
    """Seeding catalog and favorites at construction."""

    def test_empty_store_seeds_full_catalog(self, shelf):
        assert _ids(shelf.catalog) == list(range(1, 21))
        assert shelf.favorites == ()
        assert shelf.revision == 0

    def test_restored_favorites_removed_from_catalog(self):
        shelf = Shelf(InMemoryFavoritesStore(payload_for(3, 7)))
        assert _ids(shelf.favorites) == [3, 7]
        assert 3 not in _ids(shelf.catalog)
        assert 7 not in _ids(shelf.catalog)
        assert len(shelf.catalog) == 18

    def test_catalog_keeps_seed_order(self):
        shelf = Shelf(InMemoryFavoritesStore(payload_for(10, 2)))
        assert _ids(shelf.catalog) == [i for i in range(1, 21) if i not in (2, 10)]
        assert _ids(shelf.favorites) == [10, 2]

    def test_malformed_payload_starts_empty(self):
        """Decode failure never reaches the constructor."""
        shelf = Shelf(InMemoryFavoritesStore(payload=b"\x00garbage"))
        assert shelf.favorites == ()
        assert len(shelf.catalog) == 20

    @pytest.mark.parametrize("payload", [
        '[{"id": ' + "1" * 5000 + ', "title": "Big"}]',
        "[" * 100000 + "]" * 100000,
    ], ids=["huge-int", "deep-nesting"])
    def test_payload_past_parser_limits_starts_empty(self, payload):
        gw = InMemoryFavoritesStore(payload=payload)
        assert gw.load() is None
        shelf = Shelf(gw)
        assert shelf.favorites == ()
        assert _ids(shelf.catalog) == list(range(1, 21))
        assert shelf.revision == 0

    def test_restored_selection_is_reset(self):
        gw = InMemoryFavoritesStore(
            '{"version": 1, "items": [{"id": 4, "title": "Pride and Prejudice: Jane Austen", "isSelected": true}]}'
        )
        shelf = Shelf(gw)
        assert shelf.favorites[0].is_selected is False
        assert shelf.selected_ids(FAVORITES) == ()

    def test_unknown_and_duplicate_restored_ids_dropped(self):
        gw = InMemoryFavoritesStore(
            '[{"id": 99, "title": "Ghost"}, {"id": 6, "title": "Moby Dick"}, {"id": 6, "title": "Moby Dick"}]'
        )
        shelf = Shelf(gw)
        assert _ids(shelf.favorites) == [6]
        _assert_partition(shelf)

    def test_revision_continues_from_store(self):
        gw = InMemoryFavoritesStore(payload_for(1, revision=41))
        shelf = Shelf(gw)
        assert shelf.revision == 41
        result = shelf.move_to_favorites(2)
        assert result.revision == 42
        assert _ids(gw.load()) == [1, 2]

    def test_custom_seed(self):
        shelf = Shelf(InMemoryFavoritesStore(), seed=small_seed(1, 2, 3))
        assert _ids(shelf.catalog) == [1, 2, 3]

    def test_duplicate_seed_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate seed id"):
            Shelf(InMemoryFavoritesStore(), seed=small_seed(1, 1))


# -----------------------------------------------------------------------------
# Single moves
# -----------------------------------------------------------------------------

class TestMoveToFavorites:

    def test_scenario_move_five(self, shelf, gateway):
        """Move 5 out of 1-20: catalog has 19, favorites [5], slot matches."""
        result = shelf.move_to_favorites(5)

        assert result.ok
        assert result.moved == (5,)
        assert len(shelf.catalog) == 19
        assert 5 not in _ids(shelf.catalog)
        assert [(i.id, i.is_selected) for i in shelf.favorites] == [(5, False)]

        persisted = decode_items(gateway.payload)
        assert [(i.id, i.title, i.is_selected) for i in persisted] == [
            (5, "The Great Gatsby: F. Scott Fitzgerald", False),
        ]

    def test_appends_in_insertion_order(self, shelf):
        for id in (9, 2, 14):
            shelf.move_to_favorites(id)
        assert _ids(shelf.favorites) == [9, 2, 14]

    def test_idempotent(self, shelf, gateway):
        """Twice in a row leaves the item in favorites exactly once."""
        shelf.move_to_favorites(8)
        second = shelf.move_to_favorites(8)

        assert _ids(shelf.favorites) == [8]
        assert second.moved == ()
        assert second.missing == (8,)
        assert not second.ok
        assert gateway.save_calls == 1

    def test_unknown_id_is_noop(self, shelf, gateway):
        result = shelf.move_to_favorites(404)
        assert result.missing == (404,)
        assert not result.changed
        assert result.revision is None
        assert gateway.save_calls == 0
        assert len(shelf.catalog) == 20

    def test_clears_selection_of_moved_item(self, shelf):
        shelf.toggle_selection(3, CATALOG)
        shelf.move_to_favorites(3)
        assert shelf.get(3).is_selected is False
        assert shelf.selected_ids(CATALOG) == ()
        assert shelf.selected_ids(FAVORITES) == ()


class TestMoveToCatalog:

    def test_returns_item_to_end_of_catalog(self, shelf):
        shelf.move_to_favorites(1)
        result = shelf.move_to_catalog(1)
        assert result.moved == (1,)
        assert shelf.favorites == ()
        assert _ids(shelf.catalog)[-1] == 1
        assert len(shelf.catalog) == 20

    def test_persists_removal(self, shelf, gateway):
        shelf.move_to_favorites(1)
        shelf.move_to_favorites(2)
        shelf.move_to_catalog(1)
        assert _ids(decode_items(gateway.payload)) == [2]
        assert gateway.save_calls == 3

    def test_not_in_favorites_is_noop(self, shelf, gateway):
        result = shelf.move_to_catalog(4)
        assert result.missing == (4,)
        assert gateway.save_calls == 0
        assert _ids(shelf.catalog).count(4) == 1

    def test_clears_selection(self, shelf):
        shelf.move_to_favorites(6)
        shelf.toggle_selection(6, FAVORITES)
        shelf.move_to_catalog(6)
        assert shelf.get(6).is_selected is False
        assert shelf.selected_ids(FAVORITES) == ()


# -----------------------------------------------------------------------------
# Selection overlay
# -----------------------------------------------------------------------------

class TestSelection:

    def test_toggle_flips(self, shelf):
        first = shelf.toggle_selection(2, CATALOG)
        assert first.found and first.selected
        assert shelf.selected_ids(CATALOG) == (2,)
        second = shelf.toggle_selection(2, CATALOG)
        assert second.found and not second.selected
        assert shelf.selected_ids(CATALOG) == ()

    def test_toggle_missing_id(self, shelf):
        result = shelf.toggle_selection(2, FAVORITES)
        assert not result.found
        assert shelf.selected_ids(FAVORITES) == ()

    def test_selection_isolation(self, shelf):
        """Toggling in the catalog never touches favorites."""
        shelf.move_to_favorites(1)
        shelf.toggle_selection(1, FAVORITES)
        before = [(i.id, i.is_selected) for i in shelf.favorites]

        for id in (2, 3, 4):
            shelf.toggle_selection(id, CATALOG)

        assert [(i.id, i.is_selected) for i in shelf.favorites] == before

    def test_selection_not_persisted(self, shelf, gateway):
        shelf.toggle_selection(1, CATALOG)
        shelf.clear_all_selections(CATALOG)
        assert gateway.save_calls == 0

    def test_snapshot_reflects_overlay(self, shelf):
        shelf.toggle_selection(7, CATALOG)
        flags = {i.id: i.is_selected for i in shelf.catalog}
        assert flags[7] is True
        assert sum(flags.values()) == 1

    def test_clear_all_selections(self, shelf):
        for id in (1, 2, 3):
            shelf.toggle_selection(id, CATALOG)
        assert shelf.clear_all_selections(CATALOG) == 3
        assert not any(i.is_selected for i in shelf.catalog)
        assert shelf.clear_all_selections(CATALOG) == 0

    def test_unknown_collection_rejected(self, shelf):
        with pytest.raises(ValueError):
            shelf.toggle_selection(1, "wishlist")


# -----------------------------------------------------------------------------
# Bulk moves
# -----------------------------------------------------------------------------

class TestBulkMove:

    def test_bulk_move_atomicity(self):
        """{1,3} selected out of {1,2,3}: catalog {2}, one save."""
        gateway = RecordingGateway()
        shelf = Shelf(gateway, seed=small_seed(1, 2, 3))
        shelf.toggle_selection(1, CATALOG)
        shelf.toggle_selection(3, CATALOG)

        result = shelf.bulk_move_selected(CATALOG)

        assert result.moved == (1, 3)
        assert _ids(shelf.catalog) == [2]
        assert set(_ids(shelf.favorites)) >= {1, 3}
        assert not any(i.is_selected for i in shelf.favorites)
        assert gateway.save_calls == 1
        assert gateway.saved == [([1, 3], 1)]

    def test_bulk_move_follows_collection_order(self, shelf):
        for id in (12, 4, 8):
            shelf.toggle_selection(id, CATALOG)
        shelf.bulk_move_selected(CATALOG)
        assert _ids(shelf.favorites) == [4, 8, 12]

    def test_bulk_remove_from_favorites(self, shelf, gateway):
        for id in (1, 2, 3, 4):
            shelf.move_to_favorites(id)
        shelf.toggle_selection(2, FAVORITES)
        shelf.toggle_selection(4, FAVORITES)
        calls_before = gateway.save_calls

        result = shelf.bulk_move_selected(FAVORITES)

        assert result.moved == (2, 4)
        assert _ids(shelf.favorites) == [1, 3]
        assert _ids(shelf.catalog)[-2:] == [2, 4]
        assert gateway.save_calls == calls_before + 1
        _assert_partition(shelf)

    def test_nothing_selected_is_noop(self, shelf, gateway):
        result = shelf.bulk_move_selected(CATALOG)
        assert result.moved == ()
        assert result.ok
        assert gateway.save_calls == 0

    def test_unselected_items_stay(self, shelf):
        shelf.toggle_selection(5, CATALOG)
        shelf.toggle_selection(6, CATALOG)
        shelf.toggle_selection(6, CATALOG)
        shelf.bulk_move_selected(CATALOG)
        assert _ids(shelf.favorites) == [5]
        assert 6 in _ids(shelf.catalog)

    def test_other_collection_selection_survives(self, shelf):
        shelf.move_to_favorites(1)
        shelf.toggle_selection(1, FAVORITES)
        shelf.toggle_selection(2, CATALOG)
        shelf.bulk_move_selected(CATALOG)
        assert shelf.selected_ids(FAVORITES) == (1,)

    def test_persisted_selection_of_pending_removal(self, shelf, gateway):
        """A favorite flagged for removal is saved with isSelected true."""
        shelf.move_to_favorites(1)
        shelf.toggle_selection(1, FAVORITES)
        shelf.move_to_favorites(2)
        saved = {i.id: i.is_selected for i in decode_items(gateway.payload)}
        assert saved == {1: True, 2: False}


# -----------------------------------------------------------------------------
# Invariants
# -----------------------------------------------------------------------------

class TestPartitionInvariant:

    def test_random_operation_sequences(self):
        """Catalog and favorites partition the seed after any sequence."""
        rng = random.Random(1234)
        for _ in range(25):
            shelf = Shelf(RecordingGateway())
            for _ in range(60):
                op = rng.choice(("fav", "cat", "toggle", "clear", "bulk"))
                collection = rng.choice((CATALOG, FAVORITES))
                id = rng.randint(0, 22)
                if op == "fav":
                    shelf.move_to_favorites(id)
                elif op == "cat":
                    shelf.move_to_catalog(id)
                elif op == "toggle":
                    shelf.toggle_selection(id, collection)
                elif op == "clear":
                    shelf.clear_all_selections(collection)
                else:
                    moved = shelf.bulk_move_selected(collection).moved
                    assert all(not shelf.get(m).is_selected for m in moved)
                _assert_partition(shelf)
                shelf.check_invariants()
            shelf.close()

    def test_check_invariants_detects_overlap(self, shelf):
        shelf._favorites.append(1)
        with pytest.raises(InvariantViolation, match="both collections"):
            shelf.check_invariants()

    def test_check_invariants_detects_lost_item(self, shelf):
        shelf._catalog.remove(1)
        with pytest.raises(InvariantViolation, match="lost"):
            shelf.check_invariants()

    def test_check_invariants_detects_stray_selection(self, shelf):
        shelf._selection[FAVORITES].add(1)
        with pytest.raises(InvariantViolation, match="Selected ids"):
            shelf.check_invariants()


# -----------------------------------------------------------------------------
# Accessors and notification
# -----------------------------------------------------------------------------

class TestAccessors:

    def test_get_and_location(self, shelf):
        shelf.move_to_favorites(11)
        assert shelf.location(11) == FAVORITES
        assert shelf.location(12) == CATALOG
        assert shelf.location(99) is None
        assert shelf.get(11) == Item(id=11, title="")
        assert shelf.get(99) is None
        assert shelf.is_favorite(11)
        assert not shelf.is_favorite(12)

    def test_snapshots_are_immutable(self, shelf):
        assert isinstance(shelf.catalog, tuple)
        with pytest.raises(AttributeError):
            shelf.catalog[0].is_selected = True  # type: ignore[misc]


class TestSubscriptions:

    def test_subscriber_gets_current_value(self, shelf):
        seen = []
        shelf.subscribe(CATALOG, seen.append)
        assert len(seen) == 1
        assert len(seen[0]) == 20

    def test_full_snapshot_on_every_change(self, shelf):
        catalog, favorites = [], []
        shelf.subscribe(CATALOG, catalog.append)
        shelf.subscribe(FAVORITES, favorites.append)

        shelf.move_to_favorites(3)

        assert _ids(catalog[-1]) == [i for i in range(1, 21) if i != 3]
        assert _ids(favorites[-1]) == [3]

    def test_selection_change_notifies_only_that_collection(self, shelf):
        catalog, favorites = [], []
        shelf.subscribe(CATALOG, catalog.append)
        shelf.subscribe(FAVORITES, favorites.append)

        shelf.toggle_selection(1, CATALOG)

        assert len(catalog) == 2
        assert len(favorites) == 1
        assert catalog[-1][0].is_selected

    def test_noop_does_not_notify(self, shelf):
        seen = []
        shelf.subscribe(FAVORITES, seen.append)
        shelf.move_to_catalog(1)
        shelf.clear_all_selections(FAVORITES)
        assert len(seen) == 1

    def test_unsubscribe(self, shelf):
        seen = []
        unsubscribe = shelf.subscribe(FAVORITES, seen.append)
        unsubscribe()
        shelf.move_to_favorites(1)
        assert len(seen) == 1

    def test_failing_subscriber_does_not_break_moves(self, shelf):
        def broken(_):
            raise RuntimeError("render failed")

        seen = []
        shelf.subscribe(FAVORITES, broken)
        shelf.subscribe(FAVORITES, seen.append)

        result = shelf.move_to_favorites(2)

        assert result.ok
        assert _ids(seen[-1]) == [2]
