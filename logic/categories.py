"""
Marker categories and icon decoration.

Teams define categories, each with an ordered set of icons. An icon marked
"numbered" displays the marker's own number instead of its glyph. This
module also decides how each marker looks on the map (glyph, background
class) and what label a freshly placed marker gets.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-19
"""

import logging
from typing import Dict, Iterable, List, Optional

from .errors import NotFoundError, ValidationError
from .models import (
    ASSETS,
    CATEGORY,
    DEVICE,
    LOCATION,
    SEARCH_RESULT,
    CategoryIcon,
    Marker,
    MarkerCategory,
)
from .validation import ensure_unique_name, sanitise_background, sanitise_name

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {
        "name": "Area",
        "display_order": 0,
        "icons": [
            {"name": "Area", "icon": "location_on", "background_color": "dark", "is_numbered": True},
        ],
    },
    {"name": "Locations", "icon": "place", "background_color": "dark", "display_order": 1},
    {"name": "Devices", "icon": "memory", "background_color": "light", "display_order": 2},
    {"name": "Assets", "icon": "build", "background_color": "light", "display_order": 3},
]

FALLBACK_GLYPH = "memory"


def default_categories(team_id: str) -> List[MarkerCategory]:
    """Build the categories every new team starts with."""
    categories = []
    for entry in DEFAULT_CATEGORIES:
        category = MarkerCategory(
            team_id=team_id,
            name=entry["name"],
            icon=entry.get("icon"),
            background_color=entry.get("background_color", "light"),
            display_order=entry["display_order"],
        )
        for order, icon in enumerate(entry.get("icons", [])):
            category.icons.append(CategoryIcon(display_order=order, **icon))
        categories.append(category)
    return categories


class CategoryRegistry:
    """A team's marker categories, kept in display order."""

    def __init__(self, team_id: str, categories: Iterable[MarkerCategory] = ()):
        self.team_id = team_id
        self._categories: Dict[str, MarkerCategory] = {c.id: c for c in categories}

    def __len__(self) -> int:
        return len(self._categories)

    def get(self, category_id: str) -> MarkerCategory:
        category = self._categories.get(category_id)
        if category is None:
            raise NotFoundError("category", category_id)
        return category

    def find(self, category_id: Optional[str]) -> Optional[MarkerCategory]:
        return self._categories.get(category_id) if category_id else None

    def ordered(self, visible_only: bool = False) -> List[MarkerCategory]:
        categories = sorted(self._categories.values(), key=lambda c: c.display_order)
        if visible_only:
            categories = [c for c in categories if c.visible]
        return categories

    def find_icon(self, category_id: Optional[str], icon_id: Optional[str]) -> Optional[CategoryIcon]:
        category = self.find(category_id)
        if category is None or not icon_id:
            return None
        return next((i for i in category.icons if i.id == icon_id), None)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def add_category(
        self,
        name: str,
        icon: Optional[str] = None,
        background_color: str = "light",
        display_order: Optional[int] = None,
    ) -> MarkerCategory:
        name = sanitise_name(name, "Category name")
        ensure_unique_name(
            name, (c.name for c in self._categories.values()), "Category name already exists"
        )
        if display_order is None:
            display_order = len(self._categories)
        category = MarkerCategory(
            team_id=self.team_id,
            name=name,
            icon=icon,
            background_color=sanitise_background(background_color),
            display_order=display_order,
        )
        self._categories[category.id] = category
        logger.info("Created category %s for team %s", name, self.team_id)
        return category

    def update_category(self, category_id: str, **fields) -> MarkerCategory:
        category = self.get(category_id)
        if fields.get("name") is not None:
            name = sanitise_name(fields["name"], "Category name")
            ensure_unique_name(
                name,
                (c.name for c in self._categories.values() if c.id != category_id),
                "Category name already exists",
            )
            category.name = name
        if "icon" in fields and fields["icon"] is not None:
            category.icon = fields["icon"]
        if fields.get("background_color") is not None:
            category.background_color = sanitise_background(fields["background_color"])
        return category

    def remove_category(self, category_id: str) -> MarkerCategory:
        category = self.get(category_id)
        del self._categories[category_id]
        return category

    def set_visibility(self, category_id: str, visible) -> MarkerCategory:
        if not isinstance(visible, bool):
            raise ValidationError("isVisible must be a boolean")
        category = self.get(category_id)
        category.visible = visible
        return category

    def reorder(self, category_ids: List[str]) -> List[MarkerCategory]:
        """Assign display order from the position of each id in category_ids."""
        for category_id in category_ids:
            self.get(category_id)
        for order, category_id in enumerate(category_ids):
            self._categories[category_id].display_order = order
        return self.ordered()

    # ------------------------------------------------------------------
    # Icons
    # ------------------------------------------------------------------
    def add_icon(
        self,
        category_id: str,
        name: str,
        icon: str,
        background_color: str = "light",
        is_numbered: bool = False,
        display_order: Optional[int] = None,
    ) -> CategoryIcon:
        category = self.get(category_id)
        name = sanitise_name(name, "Icon name")
        if not icon:
            raise ValidationError("Name and icon are required")
        ensure_unique_name(
            name, (i.name for i in category.icons), "Icon name already exists in this category"
        )
        if display_order is None:
            display_order = len(category.icons)
        category_icon = CategoryIcon(
            name=name,
            icon=icon,
            background_color=sanitise_background(background_color),
            is_numbered=bool(is_numbered),
            display_order=display_order,
        )
        category.icons.append(category_icon)
        return category_icon

    def update_icon(self, category_id: str, icon_id: str, **fields) -> CategoryIcon:
        category = self.get(category_id)
        category_icon = self.find_icon(category_id, icon_id)
        if category_icon is None:
            raise NotFoundError("icon", icon_id)
        if fields.get("name") is not None:
            name = sanitise_name(fields["name"], "Icon name")
            ensure_unique_name(
                name,
                (i.name for i in category.icons if i.id != icon_id),
                "Icon name already exists in this category",
            )
            category_icon.name = name
        if fields.get("icon"):
            category_icon.icon = fields["icon"]
        if fields.get("background_color") is not None:
            category_icon.background_color = sanitise_background(fields["background_color"])
        if fields.get("is_numbered") is not None:
            category_icon.is_numbered = bool(fields["is_numbered"])
        return category_icon

    def remove_icon(self, category_id: str, icon_id: str) -> CategoryIcon:
        category = self.get(category_id)
        category_icon = self.find_icon(category_id, icon_id)
        if category_icon is None:
            raise NotFoundError("icon", icon_id)
        category.icons.remove(category_icon)
        return category_icon


def marker_element(marker: Marker, registry: Optional[CategoryRegistry] = None) -> Dict[str, str]:
    """Decide the visual decoration of a marker handle.

    Args:
        marker: The marker to decorate.
        registry: Team categories, used for category-typed markers.

    Returns:
        Dictionary with ``glyph`` (icon name or text), ``text`` (whether the
        glyph is literal text), ``background`` (light/dark) and ``css_class``.
    """
    element = {"glyph": FALLBACK_GLYPH, "text": False, "background": "light",
               "css_class": f"custom-marker {marker.type}"}

    if marker.is_search_result or marker.type == SEARCH_RESULT:
        element["glyph"] = "location_on"
    elif marker.type == LOCATION:
        element.update(glyph=str(marker.zone_number) if marker.zone_number is not None else "L",
                       text=True, background="dark")
    elif marker.type == DEVICE:
        element["glyph"] = marker.device_icon or "memory"
    elif marker.type == ASSETS:
        element["glyph"] = marker.asset_icon or "build"
    elif registry is not None and marker.category_id:
        category = registry.find(marker.category_id)
        icon = registry.find_icon(marker.category_id, marker.category_icon_id)
        if icon is not None:
            element["background"] = icon.background_color
            if icon.is_numbered and marker.zone_number is not None:
                element.update(glyph=str(marker.zone_number), text=True)
            else:
                element["glyph"] = icon.icon
        elif category is not None:
            element["background"] = category.background_color
            element["glyph"] = category.icon or FALLBACK_GLYPH
    return element


def default_label(
    marker_type: str,
    zone_number: Optional[int] = None,
    icon: Optional[CategoryIcon] = None,
) -> str:
    """Label given to a marker dropped from the palette."""
    if icon is not None:
        if icon.is_numbered and zone_number is not None:
            return f"{icon.name} {zone_number}"
        return icon.name
    if marker_type == LOCATION:
        return f"Location {zone_number}" if zone_number is not None else "Location"
    if marker_type == DEVICE:
        return "Device"
    if marker_type == ASSETS:
        return "Asset"
    if marker_type == CATEGORY:
        return "Marker"
    return marker_type[:1].upper() + marker_type[1:]
