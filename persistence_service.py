"""SQL-backed persistence for teams, maps, markers and categories.

This module implements the persistence adapter over the SQLAlchemy models
in ``database.py``. Each call opens its own session, so the adapter can be
used from the background writer thread.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from database import (
    CategoryIconRecord,
    CategoryRecord,
    MapRecord,
    MarkerRecord,
    SessionLocal,
    TeamRecord,
)
from logic.errors import NotFoundError, PersistenceError
from logic.models import Marker, MarkerCategory, Team, ViewState, Workspace, new_id
from logic.persistence import PersistenceAdapter
from logic.validation import check_marker_fields

MARKER_COLUMNS = {
    "label", "lat", "lng", "type", "zone_number", "device_icon", "asset_icon",
    "category_id", "category_icon_id", "locked", "parent_id", "is_search_result",
    "position", "child_position",
}


class SqlPersistence(PersistenceAdapter):
    """Persistence adapter backed by a relational database."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Database error: {e.__class__.__name__}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------
    def ensure_team(self, name: str, display_name: str = "") -> Team:
        with self._session() as db:
            record = db.query(TeamRecord).filter(TeamRecord.name == name).first()
            if record is None:
                record = TeamRecord(id=new_id(), name=name, display_name=display_name or name)
                db.add(record)
                db.flush()
            return record.to_entity()

    def get_team(self, name: str) -> Optional[Team]:
        with self._session() as db:
            record = db.query(TeamRecord).filter(TeamRecord.name == name).first()
            return record.to_entity() if record else None

    # ------------------------------------------------------------------
    # Maps
    # ------------------------------------------------------------------
    def list_workspaces(self, team_id: str) -> List[Workspace]:
        with self._session() as db:
            records = (
                db.query(MapRecord)
                .options(selectinload(MapRecord.markers))
                .filter(MapRecord.team_id == team_id)
                .order_by(MapRecord.updated_at.desc())
                .all()
            )
            return [r.to_entity() for r in records]

    def create_workspace(self, team_id, title, center_lat, center_lng, zoom, style,
                         workspace_id=None) -> Workspace:
        with self._session() as db:
            if db.get(TeamRecord, team_id) is None:
                raise NotFoundError("team", team_id)
            record = MapRecord(
                id=workspace_id or new_id(),
                team_id=team_id,
                title=title,
                center_lat=center_lat,
                center_lng=center_lng,
                zoom=zoom,
                style=style,
            )
            db.add(record)
            db.flush()
            return record.to_entity(include_markers=False)

    def update_workspace(self, workspace_id, title=None, view: Optional[ViewState] = None) -> Workspace:
        with self._session() as db:
            record = self._map(db, workspace_id)
            if title is not None:
                record.title = title
            if view is not None:
                record.center_lat = view.center_lat
                record.center_lng = view.center_lng
                record.zoom = view.zoom
                record.style = view.style
            record.updated_at = datetime.utcnow()
            db.flush()
            return record.to_entity(include_markers=False)

    def delete_workspace(self, workspace_id) -> None:
        with self._session() as db:
            db.delete(self._map(db, workspace_id))

    # ------------------------------------------------------------------
    # Markers
    # ------------------------------------------------------------------
    def create_marker(self, workspace_id, label, lat, lng, type, zone_number=None,
                      device_icon=None, asset_icon=None, parent_id=None, **extra) -> Marker:
        with self._session() as db:
            record_map = self._map(db, workspace_id)
            record = MarkerRecord(
                id=extra.pop("marker_id", None) or new_id(),
                map_id=workspace_id,
                label=label,
                lat=lat,
                lng=lng,
                type=type,
                zone_number=zone_number,
                device_icon=device_icon,
                asset_icon=asset_icon,
                parent_id=parent_id,
                **{k: v for k, v in extra.items() if k in MARKER_COLUMNS},
            )
            db.add(record)
            record_map.updated_at = datetime.utcnow()
            db.flush()
            return record.to_entity()

    def update_marker(self, marker_id, fields: Dict[str, Any]) -> Marker:
        with self._session() as db:
            record = db.get(MarkerRecord, marker_id)
            if record is None:
                raise NotFoundError("marker", marker_id)
            for key, value in check_marker_fields(fields).items():
                setattr(record, key, value)
            record.updated_at = datetime.utcnow()
            record.map.updated_at = record.updated_at
            db.flush()
            return record.to_entity()

    def delete_marker(self, marker_id) -> None:
        with self._session() as db:
            record = db.get(MarkerRecord, marker_id)
            if record is None:
                raise NotFoundError("marker", marker_id)
            # Children of a deleted parent become top level
            db.query(MarkerRecord).filter(MarkerRecord.parent_id == marker_id).update(
                {MarkerRecord.parent_id: None, MarkerRecord.child_position: None},
                synchronize_session=False,
            )
            record.map.updated_at = datetime.utcnow()
            db.delete(record)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def list_categories(self, team_id) -> List[MarkerCategory]:
        with self._session() as db:
            records = (
                db.query(CategoryRecord)
                .options(selectinload(CategoryRecord.icons))
                .filter(CategoryRecord.team_id == team_id)
                .order_by(CategoryRecord.display_order)
                .all()
            )
            return [r.to_entity() for r in records]

    def save_category(self, category: MarkerCategory) -> MarkerCategory:
        with self._session() as db:
            record = db.get(CategoryRecord, category.id)
            if record is None:
                record = CategoryRecord(id=category.id, team_id=category.team_id)
                db.add(record)
            record.name = category.name
            record.icon = category.icon
            record.background_color = category.background_color
            record.display_order = category.display_order
            record.is_visible = category.visible
            existing = {i.id: i for i in record.icons}
            icons = []
            for icon in category.icons:
                icon_record = existing.get(icon.id) or CategoryIconRecord(id=icon.id)
                icon_record.name = icon.name
                icon_record.icon = icon.icon
                icon_record.background_color = icon.background_color
                icon_record.is_numbered = icon.is_numbered
                icon_record.display_order = icon.display_order
                icons.append(icon_record)
            record.icons = icons
            db.flush()
            return record.to_entity()

    def delete_category(self, category_id) -> None:
        with self._session() as db:
            record = db.get(CategoryRecord, category_id)
            if record is None:
                raise NotFoundError("category", category_id)
            db.delete(record)

    @staticmethod
    def _map(db, workspace_id: str) -> MapRecord:
        record = db.get(MapRecord, workspace_id)
        if record is None:
            raise NotFoundError("map", workspace_id)
        return record
