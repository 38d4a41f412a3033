from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.admin_auth import AdminAuth, admin_actor_id
from app.clients.database import get_session
from app.models.admin import MaterialCreate
from app.models.enums import MaterialType
from app.repositories.material_repository import MaterialRecord
from app.services.material_service import MaterialService

router = APIRouter(prefix="/materials", tags=["admin-materials"], dependencies=[AdminAuth])


def _service(session: AsyncSession = Depends(get_session)) -> MaterialService:
    return MaterialService(session)


def _material_response(record: MaterialRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "description": record.description,
        "type": record.type.value,
        "storageKey": record.storage_key,
        "fileExtension": record.file_extension,
        "fileSizeBytes": record.file_size_bytes,
        "orderIndex": record.order_index,
        "isActive": record.is_active,
        "createdAt": record.created_at,
    }


@router.get("")
async def list_materials(
    material_type: MaterialType | None = Query(None, alias="type"),
    service: MaterialService = Depends(_service),
):
    items = await service.list_with_access_counts(material_type)
    return {
        "materials": [
            {**_material_response(material), "accessCount": count} for material, count in items
        ]
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_material(
    payload: MaterialCreate,
    service: MaterialService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    record = await service.create_material(
        title=payload.title,
        description=payload.description,
        material_type=payload.type,
        storage_key=payload.storageKey,
        file_extension=payload.fileExtension,
        file_size_bytes=payload.fileSizeBytes,
        order_index=payload.orderIndex,
        actor_id=actor_id,
    )
    return _material_response(record)
