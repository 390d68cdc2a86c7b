"""
Tests for marker categories, icons and marker decoration.

Run with: python -m pytest tests/test_categories.py
"""

import pytest

from logic.categories import CategoryRegistry, default_categories, default_label, marker_element
from logic.errors import NotFoundError, ValidationError
from logic.models import ASSETS, CATEGORY, DEVICE, LOCATION, CategoryIcon, Marker


@pytest.fixture
def registry():
    return CategoryRegistry("t1", default_categories("t1"))


def test_default_categories_in_display_order(registry):
    names = [c.name for c in registry.ordered()]
    assert names == ["Area", "Locations", "Devices", "Assets"]
    area = registry.ordered()[0]
    assert area.icons[0].is_numbered is True


def test_add_category_rejects_duplicate_and_empty_names(registry):
    with pytest.raises(ValidationError):
        registry.add_category("Devices")
    with pytest.raises(ValidationError):
        registry.add_category("   ")


def test_add_category_appends_to_order(registry):
    category = registry.add_category("Hazards", icon="warning", background_color="dark")
    assert category.display_order == 4
    assert registry.ordered()[-1] is category


def test_add_category_rejects_unknown_background(registry):
    with pytest.raises(ValidationError):
        registry.add_category("Hazards", background_color="purple")


def test_rename_to_taken_name_rejected(registry):
    devices = next(c for c in registry.ordered() if c.name == "Devices")
    with pytest.raises(ValidationError):
        registry.update_category(devices.id, name="Assets")
    registry.update_category(devices.id, name="Gear")
    assert devices.name == "Gear"


def test_visibility_must_be_boolean(registry):
    category = registry.ordered()[1]
    with pytest.raises(ValidationError):
        registry.set_visibility(category.id, "false")
    registry.set_visibility(category.id, False)
    assert category not in registry.ordered(visible_only=True)


def test_reorder(registry):
    ids = [c.id for c in registry.ordered()]
    reordered = registry.reorder(list(reversed(ids)))
    assert [c.id for c in reordered] == list(reversed(ids))


def test_reorder_unknown_id(registry):
    with pytest.raises(NotFoundError):
        registry.reorder(["missing"])


def test_icons_unique_within_category(registry):
    category = registry.ordered()[1]
    icon = registry.add_icon(category.id, "Gate", "door_front")
    assert registry.find_icon(category.id, icon.id) is icon
    with pytest.raises(ValidationError):
        registry.add_icon(category.id, "Gate", "fence")

    registry.update_icon(category.id, icon.id, is_numbered=True)
    assert icon.is_numbered is True

    registry.remove_icon(category.id, icon.id)
    assert registry.find_icon(category.id, icon.id) is None


def test_icon_requires_glyph(registry):
    with pytest.raises(ValidationError):
        registry.add_icon(registry.ordered()[0].id, "Blank", "")


class TestMarkerElement:
    def make(self, **kwargs):
        data = dict(workspace_id="w1", label="m", lat=0, lng=0)
        data.update(kwargs)
        return Marker(**data)

    def test_location_shows_zone_number_on_dark(self):
        element = marker_element(self.make(type=LOCATION, zone_number=5))
        assert (element["glyph"], element["text"], element["background"]) == ("5", True, "dark")

    def test_device_and_asset_glyphs(self):
        assert marker_element(self.make(type=DEVICE, device_icon="videocam"))["glyph"] == "videocam"
        assert marker_element(self.make(type=ASSETS))["glyph"] == "build"

    def test_search_result(self):
        assert marker_element(self.make(is_search_result=True))["glyph"] == "location_on"

    def test_category_icon_decoration(self, registry):
        category = registry.ordered()[1]
        icon = registry.add_icon(category.id, "Gate", "door_front", background_color="dark")
        marker = self.make(type=CATEGORY, category_id=category.id, category_icon_id=icon.id)

        element = marker_element(marker, registry)
        assert (element["glyph"], element["background"]) == ("door_front", "dark")

    def test_category_without_icon_falls_back_to_category(self, registry):
        category = registry.ordered()[2]
        marker = self.make(type=CATEGORY, category_id=category.id)
        assert marker_element(marker, registry)["glyph"] == "memory"


def test_default_labels():
    numbered = CategoryIcon(name="Zone", icon="location_on", is_numbered=True)
    assert default_label(LOCATION, 3) == "Location 3"
    assert default_label(LOCATION) == "Location"
    assert default_label(DEVICE) == "Device"
    assert default_label(ASSETS) == "Asset"
    assert default_label(CATEGORY, 2, numbered) == "Zone 2"
    assert default_label(CATEGORY, None, numbered) == "Zone"
