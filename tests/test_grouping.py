"""
Tests for the marker grouping engine and list drag-and-drop.

Run with: python -m pytest tests/test_grouping.py
"""

import pytest

from logic.errors import NotFoundError, ValidationError
from logic.grouping import GroupDrag, GroupingEngine
from logic.models import Marker
from logic.store import EntityStore


def make_engine(*ids):
    store = EntityStore(
        Marker(id=marker_id, workspace_id="w1", label=marker_id.upper(), lat=10.0 + i, lng=20.0 + i, position=i)
        for i, marker_id in enumerate(ids)
    )
    return GroupingEngine(store)


def child_sets(engine):
    return [set(children) for children in engine.groups().values()]


class TestAddRemove:
    """Test add_to_group and remove_from_group."""

    def test_add_then_remove_restores_ungrouped(self):
        engine = make_engine("p", "c")
        engine.add_to_group("p", "c")
        assert engine.is_child("c")
        assert engine.parent_of("c") == "p"

        engine.remove_from_group("c")
        assert engine.is_child("c") is False
        assert engine.parent_of("c") is None
        assert engine.groups() == {}

    def test_add_is_idempotent(self):
        engine = make_engine("p", "c")
        assert engine.add_to_group("p", "c") == ["c"]
        assert engine.add_to_group("p", "c") == []
        assert engine.groups() == {"p": ["c"]}

    def test_child_moves_between_groups(self):
        engine = make_engine("p1", "p2", "c1")
        engine.add_to_group("p1", "c1")
        engine.add_to_group("p2", "c1")

        assert engine.parent_of("c1") == "p2"
        assert "p1" not in engine.groups()

    def test_exclusive_membership(self):
        engine = make_engine("p1", "p2", "a", "b")
        engine.add_to_group("p1", "a")
        engine.add_to_group("p1", "b")
        engine.add_to_group("p2", "a")

        memberships = [child for children in engine.groups().values() for child in children]
        assert len(memberships) == len(set(memberships))

    def test_no_empty_groups(self):
        engine = make_engine("p", "a", "b")
        engine.add_to_group("p", "a")
        engine.add_to_group("p", "b")
        engine.remove_from_group("a")
        engine.remove_from_group("b")

        assert engine.groups() == {}
        assert all(child_sets(engine))

    def test_target_child_redirects_to_its_parent(self):
        engine = make_engine("p2", "c2", "c1")
        engine.add_to_group("p2", "c2")
        engine.add_to_group("c2", "c1")

        assert engine.parent_of("c1") == "p2"
        assert engine.groups() == {"p2": ["c2", "c1"]}

    def test_self_group_rejected(self):
        engine = make_engine("a")
        with pytest.raises(ValidationError):
            engine.add_to_group("a", "a")

    def test_unknown_marker_rejected(self):
        engine = make_engine("a")
        with pytest.raises(NotFoundError):
            engine.add_to_group("a", "missing")

    def test_parent_becoming_child_releases_its_children(self):
        engine = make_engine("p", "c", "q")
        engine.add_to_group("p", "c")
        changed = engine.add_to_group("q", "p")

        assert engine.parent_of("p") == "q"
        assert engine.parent_of("c") is None
        assert set(changed) == {"c", "p"}

    def test_remove_ungrouped_is_noop(self):
        engine = make_engine("a")
        assert engine.remove_from_group("a") == []

    def test_children_keep_insertion_order(self):
        engine = make_engine("p", "a", "b", "c")
        for child in ("c", "a", "b"):
            engine.add_to_group("p", child)
        assert engine.children_of("p") == ["c", "a", "b"]


class TestDeleteCascade:
    """Test detach_marker, the preparation step for deleting a marker."""

    def test_deleting_parent_dissolves_group(self):
        engine = make_engine("p", "c1", "c2")
        engine.add_to_group("p", "c1")
        engine.add_to_group("p", "c2")

        changed = engine.detach_marker("p")
        engine.store.remove("p")

        assert engine.groups() == {}
        assert engine.is_child("c1") is False
        assert engine.is_child("c2") is False
        assert "c1" in engine.store and "c2" in engine.store
        assert set(changed) == {"c1", "c2"}

    def test_deleting_child_keeps_siblings(self):
        engine = make_engine("p", "c1", "c2")
        engine.add_to_group("p", "c1")
        engine.add_to_group("p", "c2")

        engine.detach_marker("c1")
        engine.store.remove("c1")

        assert engine.groups() == {"p": ["c2"]}
        assert "p" in engine.store


class TestOrdering:
    def test_ordered_list_puts_children_after_parent(self):
        engine = make_engine("a", "b", "c", "d")
        engine.add_to_group("a", "d")
        engine.add_to_group("a", "c")

        assert [m.id for m in engine.ordered_list()] == ["a", "d", "c", "b"]

    def test_ungrouped_child_goes_to_end_of_top_level(self):
        engine = make_engine("a", "b", "c")
        engine.add_to_group("a", "b")
        engine.remove_from_group("b")

        assert [m.id for m in engine.top_level()] == ["a", "c", "b"]
        assert engine.store.get("b").position == 3


class TestNormalizeAndLoad:
    def test_normalize_drops_dangling_and_nested_references(self):
        engine = make_engine("a", "b", "c", "d")
        engine.store.get("b").parent_id = "a"
        engine.store.get("c").parent_id = "b"
        engine.store.get("d").parent_id = "gone"

        engine.normalize()

        assert engine.parent_of("c") == "a"
        assert engine.store.get("d").parent_id is None
        assert engine.groups() == {"a": ["b", "c"]}

    def test_load_groups_skips_unknown_ids(self):
        engine = make_engine("a", "b", "c")
        engine.load_groups({"a": ["b", "missing"], "ghost": ["c"], "c": ["c"]})

        assert engine.groups() == {"a": ["b"]}

    @pytest.mark.parametrize("mapping", [
        {"a": ["b"], "b": ["c"]},
        {"b": ["c"], "a": ["b"]},
    ])
    def test_load_groups_flattens_nested_entries_in_any_order(self, mapping):
        engine = make_engine("a", "b", "c")
        engine.load_groups(mapping)

        assert engine.parent_of("b") == "a"
        assert engine.parent_of("c") == "a"
        assert child_sets(engine) == [{"b", "c"}]

    def test_load_groups_drops_cycles(self):
        engine = make_engine("a", "b", "c")
        engine.load_groups({"a": ["b"], "b": ["a"], "c": ["b"]})

        assert engine.groups() == {}

    def test_normalize_breaks_mutual_parents(self):
        engine = make_engine("a", "b")
        engine.store.get("a").parent_id = "b"
        engine.store.get("b").parent_id = "a"

        assert engine.normalize() == ["a"]
        assert engine.groups() == {"a": ["b"]}


class TestGroupDrag:
    """Test the list drag-and-drop state machine."""

    def test_start_dims_dragged_item(self):
        drag = GroupDrag(make_engine("a", "b"))
        drag.start("a")
        assert drag.dimmed_id == "a"

    def test_over_self_is_not_highlighted(self):
        drag = GroupDrag(make_engine("a", "b"))
        drag.start("a")
        assert drag.over("a") is False
        assert drag.highlighted_id is None
        assert drag.over("b") is True
        assert drag.highlighted_id == "b"

    def test_drop_moves_child_to_new_parent(self):
        engine = make_engine("p1", "p2", "c1")
        engine.add_to_group("p1", "c1")
        drag = GroupDrag(engine)

        drag.start("c1")
        drag.over("p2")
        drag.drop("p2")
        drag.end()

        assert engine.parent_of("c1") == "p2"
        assert "p1" not in engine.groups()

    def test_drop_on_child_groups_under_its_parent(self):
        engine = make_engine("p2", "c2", "c1")
        engine.add_to_group("p2", "c2")
        drag = GroupDrag(engine)

        drag.start("c1")
        drag.drop("c2")
        drag.end()

        assert engine.parent_of("c1") == "p2"

    def test_drag_off_ungroups_child(self):
        engine = make_engine("p", "c")
        engine.add_to_group("p", "c")
        drag = GroupDrag(engine)

        drag.start("c")
        changed = drag.end()

        assert changed == ["c"]
        assert engine.is_child("c") is False
        assert drag.dimmed_id is None

    def test_cancel_keeps_child_grouped(self):
        engine = make_engine("p", "c")
        engine.add_to_group("p", "c")
        drag = GroupDrag(engine)

        drag.start("c")
        drag.cancel()

        assert engine.parent_of("c") == "p"
        assert drag.dimmed_id is None
        assert drag.end() == []

    def test_drag_off_top_level_marker_changes_nothing(self):
        engine = make_engine("a", "b")
        drag = GroupDrag(engine)
        drag.start("a")
        assert drag.end() == []

    def test_drop_parent_on_own_child_is_noop(self):
        engine = make_engine("p", "c")
        engine.add_to_group("p", "c")
        drag = GroupDrag(engine)

        drag.start("p")
        assert drag.drop("c") == []
        drag.end()

        assert engine.groups() == {"p": ["c"]}

    def test_drop_on_self_is_noop(self):
        engine = make_engine("a")
        drag = GroupDrag(engine)
        drag.start("a")
        assert drag.drop("a") == []
