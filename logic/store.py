"""
In-memory entity store.

Holds the markers of the active workspace in insertion order, keyed by id.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-13
"""

from typing import Dict, Iterable, Iterator, List, Optional

from .errors import NotFoundError, ValidationError
from .models import Marker


class EntityStore:
    """Marker table for one workspace."""

    def __init__(self, markers: Iterable[Marker] = ()):
        self._markers: Dict[str, Marker] = {}
        self.load(markers)

    def __len__(self) -> int:
        return len(self._markers)

    def __contains__(self, marker_id) -> bool:
        return marker_id in self._markers

    def __iter__(self) -> Iterator[Marker]:
        return iter(list(self._markers.values()))

    def add(self, marker: Marker) -> Marker:
        if marker.id in self._markers:
            raise ValidationError(f"Duplicate marker id '{marker.id}'")
        self._markers[marker.id] = marker
        return marker

    def get(self, marker_id: str) -> Marker:
        marker = self._markers.get(marker_id)
        if marker is None:
            raise NotFoundError("marker", marker_id)
        return marker

    def find(self, marker_id: str) -> Optional[Marker]:
        return self._markers.get(marker_id)

    def remove(self, marker_id: str) -> Marker:
        marker = self.get(marker_id)
        del self._markers[marker_id]
        return marker

    def clear(self):
        self._markers.clear()

    def load(self, markers: Iterable[Marker]):
        """Replace the table contents with markers."""
        self._markers = {}
        for marker in markers:
            self.add(marker)

    def all(self) -> List[Marker]:
        return list(self._markers.values())
