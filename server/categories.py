"""
Marker category endpoints.

This module manages the team's marker categories and their icons: create,
update, delete, visibility, display order, and per-category icons. Markers
placed from a changed category are redrawn with the new decoration.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-23
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

from logic.session import MapSession
from server.sessions import get_session

router = APIRouter()


class CategoryCreate(BaseModel):
    name: str
    icon: Optional[str] = None
    background_color: str = Field(default="light", alias="backgroundColor")
    display_order: Optional[int] = Field(default=None, alias="displayOrder")


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")


class CategoryReorder(BaseModel):
    category_ids: List[str] = Field(..., alias="categoryIds")


class IconCreate(BaseModel):
    name: str
    icon: str
    background_color: str = Field(default="light", alias="backgroundColor")
    is_numbered: bool = Field(default=False, alias="isNumbered")
    display_order: Optional[int] = Field(default=None, alias="displayOrder")


class IconUpdate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    is_numbered: Optional[bool] = Field(default=None, alias="isNumbered")


@router.get("/api/categories")
async def list_categories(visible_only: bool = False, session: MapSession = Depends(get_session)):
    """List the team's categories in display order, icons included."""
    return {"categories": [c.to_dict() for c in session.registry.ordered(visible_only)]}


@router.post("/api/categories")
async def create_category(payload: CategoryCreate, session: MapSession = Depends(get_session)):
    """Create a category.

    Raises:
        ValidationError: If the name is empty or already used by the team.
    """
    category = session.registry.add_category(
        payload.name, payload.icon, payload.background_color, payload.display_order
    )
    session.save_category(category)
    return {"success": True, "category": category.to_dict()}


@router.put("/api/categories/{category_id}")
async def update_category(category_id: str, payload: CategoryUpdate,
                          session: MapSession = Depends(get_session)):
    category = session.registry.update_category(
        category_id,
        name=payload.name,
        icon=payload.icon,
        background_color=payload.background_color,
    )
    session.save_category(category)
    return {"success": True, "category": category.to_dict()}


@router.delete("/api/categories/{category_id}")
async def delete_category(category_id: str, session: MapSession = Depends(get_session)):
    session.delete_category(category_id)
    return {"success": True}


@router.put("/api/categories/{category_id}/visibility")
async def set_visibility(category_id: str, data: Dict[str, Any] = Body(...),
                         session: MapSession = Depends(get_session)):
    """Show or hide a category in the palette.

    Args:
        category_id: Category to change.
        data: Dictionary with 'isVisible' (must be a boolean).
    """
    category = session.registry.set_visibility(category_id, data.get("isVisible"))
    session.save_category(category)
    return {"success": True, "category": category.to_dict()}


@router.post("/api/categories/reorder")
async def reorder_categories(payload: CategoryReorder, session: MapSession = Depends(get_session)):
    """Assign display order from the position of each id in the list."""
    categories = session.registry.reorder(payload.category_ids)
    for category in categories:
        session.save_category(category)
    return {"success": True, "categories": [c.to_dict() for c in categories]}


@router.post("/api/categories/{category_id}/icons")
async def create_icon(category_id: str, payload: IconCreate, session: MapSession = Depends(get_session)):
    """Add an icon to a category.

    Raises:
        ValidationError: If name or icon is missing, or the name is taken
            within the category.
    """
    icon = session.registry.add_icon(
        category_id,
        payload.name,
        payload.icon,
        payload.background_color,
        payload.is_numbered,
        payload.display_order,
    )
    session.save_category(session.registry.get(category_id))
    return {"success": True, "icon": icon.to_dict()}


@router.put("/api/categories/{category_id}/icons/{icon_id}")
async def update_icon(category_id: str, icon_id: str, payload: IconUpdate,
                      session: MapSession = Depends(get_session)):
    icon = session.registry.update_icon(
        category_id,
        icon_id,
        name=payload.name,
        icon=payload.icon,
        background_color=payload.background_color,
        is_numbered=payload.is_numbered,
    )
    session.save_category(session.registry.get(category_id))
    return {"success": True, "icon": icon.to_dict()}


@router.delete("/api/categories/{category_id}/icons/{icon_id}")
async def delete_icon(category_id: str, icon_id: str, session: MapSession = Depends(get_session)):
    session.registry.remove_icon(category_id, icon_id)
    session.save_category(session.registry.get(category_id))
    return {"success": True}
