"""Database setup and models for persisted maps.

This module provides the database connection, the ORM models for teams,
maps, markers and marker categories, and utilities for creating sessions
using SQLAlchemy. SQLite is used unless DATABASE_URL says otherwise.
"""

import os
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from logic.models import CategoryIcon, Marker, MarkerCategory, Team, ViewState, Workspace

DEFAULT_DATABASE_URL = "sqlite:///./scout_map.db"


def make_engine(url: str):
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


DATABASE_URL = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


class TeamRecord(Base):
    """A tenant owning maps and marker categories."""

    __tablename__ = "teams"

    id = Column(String(32), primary_key=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    display_name = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    maps = relationship("MapRecord", back_populates="team", cascade="all, delete-orphan")
    categories = relationship("CategoryRecord", back_populates="team", cascade="all, delete-orphan")

    def to_entity(self) -> Team:
        return Team(id=self.id, name=self.name, display_name=self.display_name or self.name)


class MapRecord(Base):
    """A named map (workspace) with its saved camera.

    Attributes:
        id: Primary key, generated by the client session.
        team_id: Owning team.
        title: Map title.
        center_lat: Saved camera latitude.
        center_lng: Saved camera longitude.
        zoom: Saved camera zoom.
        style: Basemap style key.
        updated_at: Bumped on every change to the map or its markers.
    """

    __tablename__ = "maps"

    id = Column(String(32), primary_key=True)
    team_id = Column(String(32), ForeignKey("teams.id"), nullable=False, index=True)
    title = Column(String(120), nullable=False, default="Untitled Map")
    center_lat = Column(Float, nullable=False, default=40.0)
    center_lng = Column(Float, nullable=False, default=-74.5)
    zoom = Column(Float, nullable=False, default=9.0)
    style = Column(String(100), nullable=False, default="satellite")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    team = relationship("TeamRecord", back_populates="maps")
    markers = relationship(
        "MarkerRecord",
        back_populates="map",
        cascade="all, delete-orphan",
        order_by="MarkerRecord.created_at",
    )

    def to_entity(self, include_markers: bool = True) -> Workspace:
        workspace = Workspace(
            id=self.id,
            team_id=self.team_id,
            title=self.title,
            view=ViewState(
                center_lat=self.center_lat,
                center_lng=self.center_lng,
                zoom=self.zoom,
                style=self.style,
            ),
        )
        if include_markers:
            workspace.markers = [m.to_entity() for m in self.markers]
        return workspace


class MarkerRecord(Base):
    """A placed marker. ``parent_id`` is the single-level group reference."""

    __tablename__ = "markers"

    id = Column(String(32), primary_key=True)
    map_id = Column(String(32), ForeignKey("maps.id"), nullable=False, index=True)
    label = Column(Text, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    type = Column(String(50), nullable=False, default="location")
    zone_number = Column(Integer, nullable=True)
    device_icon = Column(String(100), nullable=True)
    asset_icon = Column(String(100), nullable=True)
    category_id = Column(String(32), nullable=True)
    category_icon_id = Column(String(32), nullable=True)
    locked = Column(Boolean, nullable=False, default=False)
    parent_id = Column(String(32), nullable=True, index=True)
    is_search_result = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=True)
    child_position = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    map = relationship("MapRecord", back_populates="markers")

    def to_entity(self) -> Marker:
        return Marker(
            id=self.id,
            workspace_id=self.map_id,
            label=self.label,
            lat=self.lat,
            lng=self.lng,
            type=self.type,
            zone_number=self.zone_number,
            device_icon=self.device_icon,
            asset_icon=self.asset_icon,
            category_id=self.category_id,
            category_icon_id=self.category_icon_id,
            locked=bool(self.locked),
            parent_id=self.parent_id,
            is_search_result=bool(self.is_search_result),
            position=self.position,
            child_position=self.child_position,
        )


class CategoryRecord(Base):
    """A team-defined marker category."""

    __tablename__ = "marker_categories"
    __table_args__ = (UniqueConstraint("team_id", "name", name="uq_category_team_name"),)

    id = Column(String(32), primary_key=True)
    team_id = Column(String(32), ForeignKey("teams.id"), nullable=False, index=True)
    name = Column(String(64), nullable=False)
    icon = Column(String(100), nullable=True)
    background_color = Column(String(20), nullable=False, default="light")
    display_order = Column(Integer, nullable=False, default=0)
    is_visible = Column(Boolean, nullable=False, default=True)

    team = relationship("TeamRecord", back_populates="categories")
    icons = relationship(
        "CategoryIconRecord",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="CategoryIconRecord.display_order",
    )

    def to_entity(self) -> MarkerCategory:
        return MarkerCategory(
            id=self.id,
            team_id=self.team_id,
            name=self.name,
            icon=self.icon,
            background_color=self.background_color,
            display_order=self.display_order,
            visible=bool(self.is_visible),
            icons=[i.to_entity() for i in self.icons],
        )


class CategoryIconRecord(Base):
    """An icon template inside a marker category."""

    __tablename__ = "category_icons"
    __table_args__ = (UniqueConstraint("category_id", "name", name="uq_icon_category_name"),)

    id = Column(String(32), primary_key=True)
    category_id = Column(String(32), ForeignKey("marker_categories.id"), nullable=False, index=True)
    name = Column(String(64), nullable=False)
    icon = Column(String(100), nullable=False)
    background_color = Column(String(20), nullable=False, default="light")
    is_numbered = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)

    category = relationship("CategoryRecord", back_populates="icons")

    def to_entity(self) -> CategoryIcon:
        return CategoryIcon(
            id=self.id,
            name=self.name,
            icon=self.icon,
            background_color=self.background_color,
            is_numbered=bool(self.is_numbered),
            display_order=self.display_order,
        )


def init_db(bind=None):
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=bind or engine)
