"""
API tests for the Scout Map HTTP endpoints.

Run with: python -m pytest tests/test_api.py
"""

import inspect

import pytest
from fastapi.testclient import TestClient

from logic.config import get_default_config
from logic.persistence import InMemoryPersistence
from main import app
from server import sessions as session_registry
from server.transfer import export_team_data
from server.workspaces import end_session, start_session


@pytest.fixture
def adapter():
    adapter = InMemoryPersistence()
    session_registry.sessions.clear()
    session_registry.configure(adapter, executor=None, config=get_default_config())
    yield adapter
    session_registry.sessions.clear()


@pytest.fixture
def client(adapter):
    return TestClient(app)


@pytest.fixture
def headers(client):
    response = client.post("/api/session/start", json={"team": "Alpha", "displayName": "Alpha Team"})
    assert response.status_code == 200
    return {"X-Session-ID": response.json()["session"]}


def place(client, headers, **payload):
    data = {"lat": 40.0, "lng": -74.0}
    data.update(payload)
    response = client.post("/api/markers", json=data, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["marker"]


class TestSession:
    def test_start_creates_team_and_default_map(self, client, adapter):
        response = client.post("/api/session/start", json={"team": "Alpha"})
        data = response.json()

        assert data["team"]["name"] == "alpha"
        assert len(data["maps"]) == 1
        assert data["activeMapId"] == data["maps"][0]["id"]
        assert data["labelsVisible"] is False
        assert data["camera"]["center"] == {"lat": 39.8283, "lng": -98.5795}
        assert adapter.get_team("alpha") is not None

    def test_missing_session_id(self, client, adapter):
        assert client.get("/api/markers").status_code == 401

    def test_unknown_session(self, client, adapter):
        response = client.get("/api/markers", headers={"X-Session-ID": "nope"})
        assert response.status_code == 404

    def test_session_id_in_query_string(self, client, headers):
        response = client.get(f"/api/session/state?session={headers['X-Session-ID']}")
        assert response.status_code == 200

    def test_close_session(self, client, headers):
        assert client.post("/api/session/close", headers=headers).json() == {"success": True}
        assert client.get("/api/markers", headers=headers).status_code == 404

    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    @pytest.mark.parametrize("handler", [start_session, end_session, export_team_data])
    def test_database_bound_handlers_run_in_threadpool(self, handler):
        assert not inspect.iscoroutinefunction(handler)


class TestMarkers:
    def test_place_edit_lock_delete(self, client, headers, adapter):
        marker = place(client, headers, zoneNumber=3)
        assert marker["label"] == "Location 3"
        assert marker["id"] in adapter.markers

        response = client.put(f"/api/markers/{marker['id']}",
                              json={"label": "Gate", "coordinates": "41.5, -73.25"}, headers=headers)
        assert response.json()["marker"]["lat"] == 41.5

        response = client.post(f"/api/markers/{marker['id']}/lock", headers=headers)
        assert response.json()["locked"] is True

        response = client.post(f"/api/markers/{marker['id']}/move", json={"lat": 0, "lng": 0}, headers=headers)
        assert response.json()["moved"] is False

        assert client.delete(f"/api/markers/{marker['id']}", headers=headers).status_code == 200
        assert adapter.markers == {}

    def test_out_of_range_coordinates_rejected(self, client, headers, adapter):
        response = client.post("/api/markers", json={"lat": 95, "lng": 0}, headers=headers)
        assert response.status_code == 400
        assert "Invalid coordinates" in response.json()["detail"]
        assert adapter.markers == {}

    def test_bad_coordinate_text_rejected(self, client, headers):
        marker = place(client, headers)
        response = client.put(f"/api/markers/{marker['id']}",
                              json={"label": "Gate", "coordinates": "north"}, headers=headers)
        assert response.status_code == 400

    def test_unknown_marker(self, client, headers):
        response = client.post("/api/markers/missing/lock", headers=headers)
        assert response.status_code == 404

    def test_clear_requires_confirmation(self, client, headers):
        place(client, headers)
        place(client, headers, lat=41.0)

        assert client.delete("/api/markers", headers=headers).status_code == 409
        response = client.delete("/api/markers?confirm=true", headers=headers)
        assert response.json()["removed"] == 2

    def test_search_result(self, client, headers):
        feature = {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [-74.006, 40.7128]},
            "properties": {"place_name": "New York, NY"},
        }
        response = client.post("/api/markers/search-result", json=feature, headers=headers)
        data = response.json()
        assert data["marker"]["label"] == "New York, NY"
        assert data["lastSearchLocation"]["zoom"] == 16

        response = client.post("/api/view/camera", json={"lat": 10, "lng": 10, "zoom": 5}, headers=headers)
        assert response.json()["offCenter"] is True
        client.post("/api/view/recenter", headers=headers)
        state = client.get("/api/session/state", headers=headers).json()
        assert state["offCenter"] is False


class TestView:
    def test_labels_and_screenshot(self, client, headers):
        response = client.post("/api/view/labels", json={}, headers=headers)
        assert response.json()["labelsVisible"] is True

        client.post("/api/view/labels", json={"visible": False}, headers=headers)
        response = client.post("/api/view/screenshot?active=true", headers=headers)
        assert response.json() == {"success": True, "screenshotMode": True, "labelsVisible": True}
        response = client.post("/api/view/screenshot?active=false", headers=headers)
        assert response.json()["labelsVisible"] is False

    def test_style(self, client, headers):
        response = client.post("/api/view/style", json={"style": "street"}, headers=headers)
        assert response.json()["styleUrl"] == "mapbox://styles/mapbox/streets-v12"
        assert client.post("/api/view/style", json={"style": "neon"}, headers=headers).status_code == 400


class TestGroups:
    def test_drag_and_drop_groups_markers(self, client, headers, adapter):
        parent = place(client, headers, label="HQ")
        child = place(client, headers, label="Router", lat=41.0)

        client.post("/api/intent/drag_start", json={"id": child["id"]}, headers=headers)
        over = client.post("/api/intent/drag_over", json={"target": parent["id"]}, headers=headers)
        assert over.json()["highlighted"] == parent["id"]
        response = client.post("/api/intent/drop", json={"target": parent["id"]}, headers=headers)
        client.post("/api/intent/drag_end", headers=headers)

        assert response.json()["groups"] == {parent["id"]: [child["id"]]}
        assert adapter.markers[child["id"]].parent_id == parent["id"]

        markers = client.get("/api/markers", headers=headers).json()["markers"]
        assert [m["isChild"] for m in markers] == [False, True]

    def test_drop_without_drag(self, client, headers):
        marker = place(client, headers)
        response = client.post("/api/intent/drop", json={"target": marker["id"]}, headers=headers)
        assert response.status_code == 400

    def test_missing_fields(self, client, headers):
        response = client.post("/api/intent/group", json={"parent": "a"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields: child"

    def test_group_and_ungroup(self, client, headers):
        parent = place(client, headers)
        child = place(client, headers, lat=41.0)

        client.post("/api/intent/group", json={"parent": parent["id"], "child": child["id"]}, headers=headers)
        response = client.post("/api/intent/ungroup", json={"child": child["id"]}, headers=headers)

        assert response.json()["groups"] == {}
        assert response.json()["changed"] == [child["id"]]


class TestMaps:
    def test_create_switch_rename_delete(self, client, headers):
        first = client.get("/api/maps", headers=headers).json()["activeMapId"]
        place(client, headers)

        created = client.post("/api/maps", json={"title": "Survey"}, headers=headers).json()
        assert created["state"]["markers"] == []
        new_id = created["map"]["id"]

        response = client.post(f"/api/maps/{first}/switch", headers=headers).json()
        assert response["switched"] is True
        assert len(response["state"]["markers"]) == 1

        response = client.put(f"/api/maps/{new_id}", json={"title": "Depot"}, headers=headers)
        assert response.json()["map"]["title"] == "Depot"

        assert client.delete(f"/api/maps/{first}", headers=headers).status_code == 409
        response = client.delete(f"/api/maps/{first}?confirm=true", headers=headers).json()
        assert response["state"]["activeMapId"] == new_id

    def test_switch_to_unknown_map(self, client, headers):
        assert client.post("/api/maps/nope/switch", headers=headers).status_code == 404


class TestTransfer:
    def test_export_then_import_into_new_map(self, client, headers):
        parent = place(client, headers, label="HQ")
        child = place(client, headers, label="Router", lat=41.0, type="device", deviceIcon="router")
        client.post("/api/intent/group", json={"parent": parent["id"], "child": child["id"]}, headers=headers)

        response = client.get("/api/transfer/export", headers=headers)
        assert response.headers["content-disposition"].startswith('attachment; filename="scout-map-')
        document = response.json()

        client.post("/api/maps", json={"title": "Copy"}, headers=headers)
        response = client.post("/api/transfer/import", json=document, headers=headers)
        data = response.json()

        assert data["imported"] == 2
        assert set(data["idMap"]) == {parent["id"], child["id"]}
        assert parent["id"] not in data["idMap"].values()
        labels = sorted(m["label"] for m in data["state"]["markers"])
        assert labels == ["HQ", "Router"]
        assert len(data["state"]["groups"]) == 1

    def test_import_needs_confirmation_over_markers(self, client, headers):
        place(client, headers)
        document = client.get("/api/transfer/export", headers=headers).json()
        assert client.post("/api/transfer/import", json=document, headers=headers).status_code == 409
        response = client.post("/api/transfer/import?confirm=true", json=document, headers=headers)
        assert response.status_code == 200

    def test_invalid_import(self, client, headers):
        response = client.post("/api/transfer/import", json={"title": "x"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid map file format"

    def test_team_export_csv(self, client, headers):
        place(client, headers, label="Gate")
        response = client.get("/api/teams/export?format=csv", headers=headers)

        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("Map Title,Marker Label")
        assert "Gate" in lines[1]

    def test_team_export_unknown_format(self, client, headers):
        assert client.get("/api/teams/export?format=xml", headers=headers).status_code == 400


class TestCategories:
    def test_defaults_and_validation(self, client, headers):
        categories = client.get("/api/categories", headers=headers).json()["categories"]
        assert [c["name"] for c in categories] == ["Area", "Locations", "Devices", "Assets"]

        response = client.post("/api/categories", json={"name": "Devices"}, headers=headers)
        assert response.status_code == 400

        category_id = categories[1]["id"]
        response = client.put(f"/api/categories/{category_id}/visibility",
                              json={"isVisible": "no"}, headers=headers)
        assert response.status_code == 400

    def test_category_marker_redraws_on_icon_change(self, client, headers):
        category = client.post("/api/categories", json={"name": "Hazards", "icon": "warning"},
                               headers=headers).json()["category"]
        icon = client.post(f"/api/categories/{category['id']}/icons",
                           json={"name": "Fire", "icon": "local_fire_department"},
                           headers=headers).json()["icon"]
        marker = place(client, headers, type="category", categoryId=category["id"], categoryIconId=icon["id"])
        assert marker["label"] == "Fire"

        client.put(f"/api/categories/{category['id']}/icons/{icon['id']}",
                   json={"icon": "whatshot"}, headers=headers)
        handles = client.get("/api/session/state", headers=headers).json()["handles"]
        assert handles[0]["element"]["glyph"] == "whatshot"

    def test_reorder(self, client, headers):
        categories = client.get("/api/categories", headers=headers).json()["categories"]
        ids = [c["id"] for c in reversed(categories)]
        response = client.post("/api/categories/reorder", json={"categoryIds": ids}, headers=headers)
        assert [c["id"] for c in response.json()["categories"]] == ids
