"""
Tests for the persistence adapters and the fire-and-forget writer.

Run with: python -m pytest tests/test_persistence.py
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.orm import sessionmaker

from database import init_db, make_engine
from logic.errors import NotFoundError, ValidationError
from logic.models import CategoryIcon, Marker, MarkerCategory, ViewState
from logic.notices import NoticeBoard
from logic.persistence import InMemoryPersistence, PersistenceWriter
from persistence_service import SqlPersistence


@pytest.fixture
def sql_adapter():
    engine = make_engine("sqlite://")
    init_db(bind=engine)
    yield SqlPersistence(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def adapter(request):
    if request.param == "memory":
        return InMemoryPersistence()
    return request.getfixturevalue("sql_adapter")


def seed(adapter):
    team = adapter.ensure_team("alpha", "Alpha Team")
    workspace = adapter.create_workspace(team.id, "Yard", 40.0, -74.5, 9, "satellite")
    return team, workspace


class TestAdapters:
    def test_ensure_team_is_idempotent(self, adapter):
        first = adapter.ensure_team("alpha")
        second = adapter.ensure_team("alpha")
        assert first.id == second.id
        assert adapter.get_team("bravo") is None

    def test_workspace_roundtrip_with_markers(self, adapter):
        team, workspace = seed(adapter)
        adapter.create_marker(workspace.id, "Gate", 40.1, -74.4, "location", zone_number=2,
                              marker_id="m1", position=0)

        (loaded,) = adapter.list_workspaces(team.id)
        assert loaded.title == "Yard"
        assert (loaded.view.center_lat, loaded.view.zoom) == (40.0, 9)
        assert [(m.id, m.label, m.zone_number) for m in loaded.markers] == [("m1", "Gate", 2)]

    def test_update_workspace_view_and_title(self, adapter):
        team, workspace = seed(adapter)
        adapter.update_workspace(workspace.id, title="Depot", view=ViewState(1.0, 2.0, 3.0, "street"))

        (loaded,) = adapter.list_workspaces(team.id)
        assert loaded.title == "Depot"
        assert (loaded.view.center_lat, loaded.view.style) == (1.0, "street")

    def test_create_marker_from_keeps_local_id(self, adapter):
        team, workspace = seed(adapter)
        local = Marker(workspace_id=workspace.id, label="HQ", lat=1, lng=2, locked=True, position=4)
        adapter.create_marker_from(local)

        marker = adapter.list_workspaces(team.id)[0].markers[0]
        assert (marker.id, marker.locked, marker.position) == (local.id, True, 4)

    def test_update_marker_validates_fields(self, adapter):
        _, workspace = seed(adapter)
        adapter.create_marker(workspace.id, "Gate", 40.1, -74.4, "location", marker_id="m1")

        updated = adapter.update_marker("m1", {"label": "North Gate", "lat": 41.0, "lng": -73.0})
        assert (updated.label, updated.lat) == ("North Gate", 41.0)
        with pytest.raises(ValidationError):
            adapter.update_marker("m1", {"workspace_id": "elsewhere"})
        with pytest.raises(NotFoundError):
            adapter.update_marker("missing", {"label": "x"})

    def test_delete_parent_releases_children(self, adapter):
        team, workspace = seed(adapter)
        adapter.create_marker(workspace.id, "P", 1, 1, "location", marker_id="p")
        adapter.create_marker(workspace.id, "C", 2, 2, "location", parent_id="p",
                              marker_id="c", child_position=0)

        adapter.delete_marker("p")

        (loaded,) = adapter.list_workspaces(team.id)
        assert [m.id for m in loaded.markers] == ["c"]
        assert loaded.markers[0].parent_id is None

    def test_delete_workspace_cascades_markers(self, adapter):
        team, workspace = seed(adapter)
        adapter.create_marker(workspace.id, "Gate", 1, 1, "location", marker_id="m1")

        adapter.delete_workspace(workspace.id)

        assert adapter.list_workspaces(team.id) == []
        with pytest.raises(NotFoundError):
            adapter.update_marker("m1", {"label": "x"})

    def test_marker_in_unknown_workspace(self, adapter):
        with pytest.raises(NotFoundError):
            adapter.create_marker("nope", "Gate", 1, 1, "location")

    def test_category_save_update_and_delete(self, adapter):
        team, _ = seed(adapter)
        category = MarkerCategory(team_id=team.id, name="Hazards", icon="warning")
        category.icons.append(CategoryIcon(name="Fire", icon="fire", is_numbered=True))
        adapter.save_category(category)

        category.name = "Dangers"
        category.icons[0].name = "Flame"
        category.icons.append(CategoryIcon(name="Flood", icon="water", display_order=1))
        adapter.save_category(category)

        (loaded,) = adapter.list_categories(team.id)
        assert loaded.name == "Dangers"
        assert [i.name for i in loaded.ordered_icons()] == ["Flame", "Flood"]
        assert loaded.icons[0].is_numbered is True

        adapter.delete_category(category.id)
        assert adapter.list_categories(team.id) == []
        with pytest.raises(NotFoundError):
            adapter.delete_category(category.id)


class TestWriter:
    def test_inline_failure_becomes_notice(self):
        notices = NoticeBoard()
        writer = PersistenceWriter(InMemoryPersistence(), notices)

        assert writer.submit("delete marker", writer.adapter.delete_marker, "missing") is None

        (notice,) = notices.latest()
        assert notice.operation == "delete marker"
        assert notice.level == "error"

    def test_executor_keeps_submission_order(self):
        calls = []
        executor = ThreadPoolExecutor(max_workers=1)
        writer = PersistenceWriter(InMemoryPersistence(), executor=executor)
        try:
            for i in range(20):
                writer.submit("record", calls.append, i)
            writer.flush(timeout=5)
        finally:
            executor.shutdown(wait=True)
        assert calls == list(range(20))

    def test_unexpected_exception_is_reported(self):
        notices = NoticeBoard()
        writer = PersistenceWriter(InMemoryPersistence(), notices)

        def boom():
            raise RuntimeError("disk full")

        writer.submit("save category", boom)
        assert "disk full" in notices.latest()[0].message

    def test_flush_from_another_thread_while_submitting(self):
        calls = []
        gate = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1)
        writer = PersistenceWriter(InMemoryPersistence(), executor=executor)
        try:
            writer.submit("wait", gate.wait, 5)
            writer.submit("record", calls.append, 1)
            flusher = threading.Thread(target=writer.flush, kwargs={"timeout": 5})
            flusher.start()
            writer.submit("record", calls.append, 2)
            gate.set()
            flusher.join(timeout=5)
            writer.flush(timeout=5)
        finally:
            executor.shutdown(wait=True)
        assert calls == [1, 2]
