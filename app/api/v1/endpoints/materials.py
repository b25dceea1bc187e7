"""Support materials API endpoints."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select

from app.api.deps import DB, require_capability
from app.models.material import Material
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.material import MaterialCreate, MaterialUpdate, MaterialResponse


router = APIRouter()


async def _get_material(db, material_id: UUID) -> Material:
    material = await db.get(Material, material_id)
    if not material:
        raise HTTPException(status_code=404, detail="Material not found")
    return material


@router.get("", response_model=List[MaterialResponse])
async def list_materials(
    db: DB,
    current_user: User = Depends(require_capability("materials", "list")),
):
    """All materials, newest first."""
    result = await db.execute(select(Material).order_by(Material.created_at.desc()))
    return result.scalars().all()


@router.post("", response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
async def create_material(
    data: MaterialCreate,
    db: DB,
    current_user: User = Depends(require_capability("materials", "write")),
):
    material = Material(
        title=data.title,
        description=data.description,
        type=data.type.value,
        url=data.url,
        content=data.content,
        thumbnail=data.thumbnail,
    )
    db.add(material)
    await db.flush()
    await db.refresh(material)
    return material


@router.put("/{material_id}", response_model=MaterialResponse)
async def update_material(
    material_id: UUID,
    data: MaterialUpdate,
    db: DB,
    current_user: User = Depends(require_capability("materials", "write")),
):
    material = await _get_material(db, material_id)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is None and field in ("title", "type"):
            continue
        if hasattr(value, "value"):
            value = value.value
        setattr(material, field, value)

    await db.flush()
    await db.refresh(material)
    return material


@router.delete("/{material_id}", response_model=MessageResponse)
async def delete_material(
    material_id: UUID,
    db: DB,
    current_user: User = Depends(require_capability("materials", "write")),
):
    material = await _get_material(db, material_id)
    await db.delete(material)
    return MessageResponse(message="Material deleted successfully")
