"""
Marker grouping engine.

Groups are a single level deep: a marker may have a parent, and a parent
never has a parent itself. The parent reference is stored on each child
(``Marker.parent_id``); the parent -> children mapping is an index derived
from the entity store, so an empty group cannot exist.

Every mutating call returns the ids of markers whose parent reference or
ordering changed, so the caller can persist exactly those records.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-14
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .models import Marker
from .store import EntityStore

logger = logging.getLogger(__name__)

GROUPING_FIELDS = ("parent_id", "child_position", "position")


def grouping_fields(marker: Marker) -> Dict[str, Any]:
    """The persisted fields a grouping change can touch."""
    return {name: getattr(marker, name) for name in GROUPING_FIELDS}


class GroupingEngine:
    """Parent/child bookkeeping over an :class:`EntityStore`."""

    def __init__(self, store: EntityStore):
        self.store = store

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def is_child(self, marker_id: str) -> bool:
        return self.parent_of(marker_id) is not None

    def parent_of(self, marker_id: str) -> Optional[str]:
        marker = self.store.find(marker_id)
        if marker is None or marker.parent_id not in self.store:
            return None
        return marker.parent_id

    def children_of(self, parent_id: str) -> List[str]:
        children = [m for m in self.store if m.parent_id == parent_id]
        return [m.id for m in _by_position(children, "child_position")]

    def is_parent(self, marker_id: str) -> bool:
        return any(m.parent_id == marker_id for m in self.store)

    def groups(self) -> Dict[str, List[str]]:
        """Return the adjacency map ``{parent_id: [child_id, ...]}``."""
        result: Dict[str, List[str]] = {}
        for marker in self.store:
            if marker.parent_id and marker.parent_id in self.store:
                result.setdefault(marker.parent_id, []).append(marker)
        return {
            parent_id: [m.id for m in _by_position(children, "child_position")]
            for parent_id, children in result.items()
        }

    def effective_parent(self, target_id: str) -> str:
        """Resolve a drop target: a child cannot own a group, so dropping on a
        child groups under that child's parent."""
        return self.parent_of(target_id) or target_id

    def top_level(self) -> List[Marker]:
        """Markers that are not children, ordered by position."""
        return _by_position([m for m in self.store if not self.is_child(m.id)], "position")

    def next_position(self) -> int:
        """Position that appends a marker to the end of the top level."""
        return _next_position(m.position for m in self.top_level())

    def ordered_list(self) -> List[Marker]:
        """Markers in list order: each top-level marker followed by its children."""
        ordered = []
        for marker in self.top_level():
            ordered.append(marker)
            ordered.extend(self.store.get(cid) for cid in self.children_of(marker.id))
        return ordered

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_to_group(self, parent_id: str, child_id: str) -> List[str]:
        """Make child_id a child of parent_id (or of parent_id's own parent).

        Args:
            parent_id: Requested parent (drop target).
            child_id: Marker being grouped.

        Returns:
            Ids of markers whose grouping changed.

        Raises:
            NotFoundError: If either marker does not exist.
            ValidationError: If parent_id equals child_id.
        """
        self.store.get(parent_id)
        child = self.store.get(child_id)
        if parent_id == child_id:
            raise ValidationError("A marker cannot be grouped under itself")

        effective = self.effective_parent(parent_id)
        if effective == child_id:
            # Dropping a parent onto one of its own children
            return []
        if child.parent_id == effective:
            return []

        changed = []
        # A parent that becomes a child hands its children back to the top level
        for orphan_id in self.children_of(child_id):
            changed.extend(self.remove_from_group(orphan_id))

        siblings = [self.store.get(cid) for cid in self.children_of(effective)]
        child.parent_id = effective
        child.child_position = _next_position(m.child_position for m in siblings)
        child.position = None
        changed.append(child_id)

        logger.info("Grouped marker %s under %s", child_id, effective)
        return changed

    def remove_from_group(self, child_id: str) -> List[str]:
        """Detach child_id from its group; no-op if it is not grouped."""
        child = self.store.find(child_id)
        if child is None or child.parent_id is None:
            return []

        child.parent_id = None
        child.child_position = None
        child.position = self.next_position()
        logger.info("Removed marker %s from group", child_id)
        return [child_id]

    def detach_marker(self, marker_id: str) -> List[str]:
        """Prepare a marker for deletion.

        A parent's group is dissolved (children become top level, not deleted
        or reassigned); a child is removed from its parent's group.
        """
        changed = []
        for child_id in self.children_of(marker_id):
            changed.extend(self.remove_from_group(child_id))
        marker = self.store.find(marker_id)
        if marker is not None:
            marker.parent_id = None
            marker.child_position = None
        return changed

    def normalize(self) -> List[str]:
        """Repair loaded data: drop dangling and self references and flatten
        nested groups to a single level."""
        changed = []
        for marker in self.store:
            parent = self.store.find(marker.parent_id) if marker.parent_id else None
            if marker.parent_id and (parent is None or parent.id == marker.id):
                marker.parent_id = None
                marker.child_position = None
                changed.append(marker.id)
            elif parent is not None and parent.parent_id == marker.id:
                marker.parent_id = None
                marker.child_position = None
                changed.append(marker.id)
            elif parent is not None and parent.parent_id and parent.parent_id in self.store:
                marker.parent_id = parent.parent_id
                changed.append(marker.id)
        return changed

    def load_groups(self, mapping: Dict[str, List[str]]) -> List[str]:
        """Apply an adjacency map, skipping unknown ids and invalid pairs.

        Nested entries are flattened onto their top-level parent, whatever
        order the map lists them in. Entries forming a cycle are dropped.
        """
        changed = []
        for marker in self.store:
            if marker.parent_id is not None:
                marker.parent_id = None
                marker.child_position = None
                changed.append(marker.id)

        listed_parent: Dict[str, str] = {}
        for parent_id, child_ids in (mapping or {}).items():
            for child_id in child_ids or []:
                if parent_id not in self.store or child_id not in self.store:
                    logger.debug("Skipping group %s -> %s: unknown marker", parent_id, child_id)
                    continue
                if parent_id != child_id:
                    listed_parent.setdefault(child_id, parent_id)

        for child_id in listed_parent:
            root = _root_of(listed_parent, child_id)
            if root is None:
                logger.debug("Skipping group cycle through %s", child_id)
                continue
            changed.extend(self.add_to_group(root, child_id))
        return sorted(set(changed), key=changed.index)


class GroupDrag:
    """Drag-and-drop state for grouping items in the marker list.

    This is list reordering, distinct from dragging a marker handle on the
    map canvas. A drag that ends without a successful drop ungroups the
    dragged marker if it was a child.
    """

    def __init__(self, engine: GroupingEngine):
        self.engine = engine
        self.dragged_id: Optional[str] = None
        self.highlighted_id: Optional[str] = None
        self.successful = False

    @property
    def dimmed_id(self) -> Optional[str]:
        return self.dragged_id

    def start(self, marker_id: str):
        self.engine.store.get(marker_id)
        self.dragged_id = marker_id
        self.highlighted_id = None
        self.successful = False

    def over(self, target_id: str) -> bool:
        """Highlight a candidate target; returns whether it is highlighted."""
        if self.dragged_id is None or target_id == self.dragged_id:
            self.highlighted_id = None
            return False
        self.highlighted_id = target_id
        return True

    def drop(self, target_id: str) -> List[str]:
        """Group the dragged marker under the drop target's effective parent."""
        changed: List[str] = []
        dragged = self.dragged_id
        self.highlighted_id = None
        if not dragged or not target_id or dragged == target_id:
            return changed
        if target_id not in self.engine.store or dragged not in self.engine.store:
            return changed

        effective = self.engine.effective_parent(target_id)
        if effective == dragged:
            return changed
        changed.extend(self.engine.remove_from_group(dragged))
        changed.extend(self.engine.add_to_group(effective, dragged))
        self.successful = True
        return sorted(set(changed), key=changed.index)

    def end(self) -> List[str]:
        """Finish the drag; a child released outside any target is ungrouped."""
        changed: List[str] = []
        if not self.successful and self.dragged_id and self.engine.is_child(self.dragged_id):
            changed = self.engine.remove_from_group(self.dragged_id)
            logger.info("Removed marker %s from group (drag-off)", self.dragged_id)
        self.dragged_id = None
        self.highlighted_id = None
        self.successful = False
        return changed

    def cancel(self):
        """Abandon the drag without the drag-off ungroup."""
        self.dragged_id = None
        self.highlighted_id = None
        self.successful = False


def _next_position(positions) -> int:
    values = [p for p in positions if p is not None]
    return max(values, default=-1) + 1


def _by_position(markers: List[Marker], attr: str) -> List[Marker]:
    # Unpositioned markers keep store order after the positioned ones
    indexed = [(getattr(m, attr), i, m) for i, m in enumerate(markers)]
    indexed.sort(key=lambda item: (item[0] is None, item[0] or 0, item[1]))
    return [m for _, _, m in indexed]


def _root_of(listed_parent: Dict[str, str], child_id: str) -> Optional[str]:
    seen = {child_id}
    current = listed_parent[child_id]
    while current in listed_parent:
        if current in seen:
            return None
        seen.add(current)
        current = listed_parent[current]
    return current
