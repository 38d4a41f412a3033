from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.admin_auth import AdminAuth, admin_actor_id
from app.clients.database import get_session
from app.models.admin import PostTestBatchCreate, PostTestBatchUpdate
from app.repositories.post_test_batch_repository import PostTestBatchRecord
from app.services.post_test_batch_service import PostTestBatchService

router = APIRouter(
    prefix="/posttest-batches", tags=["admin-posttest-batches"], dependencies=[AdminAuth]
)


def _service(session: AsyncSession = Depends(get_session)) -> PostTestBatchService:
    return PostTestBatchService(session)


def _batch_response(record: PostTestBatchRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "description": record.description,
        "openDate": record.open_date,
        "closeDate": record.close_date,
        "isActive": record.is_active,
        "createdAt": record.created_at,
    }


@router.get("")
async def list_batches(service: PostTestBatchService = Depends(_service)):
    batches = await service.list_batches()
    current = await service.current_open_batch()
    return {
        "batches": [_batch_response(batch) for batch in batches],
        "currentBatchId": current.id if current else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_batch(
    payload: PostTestBatchCreate,
    service: PostTestBatchService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    record = await service.create_batch(
        payload.name,
        payload.description,
        payload.openDate,
        payload.closeDate,
        actor_id=actor_id,
    )
    return _batch_response(record)


@router.put("/{batch_id}")
async def update_batch(
    batch_id: str,
    payload: PostTestBatchUpdate,
    service: PostTestBatchService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    record = await service.update_batch(
        batch_id,
        payload.name,
        payload.description,
        payload.openDate,
        payload.closeDate,
        payload.isActive,
        actor_id=actor_id,
    )
    return _batch_response(record)


@router.post("/{batch_id}/close")
async def close_batch(
    batch_id: str,
    service: PostTestBatchService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    record = await service.close_batch(batch_id, actor_id=actor_id)
    return _batch_response(record)


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_batch(
    batch_id: str,
    service: PostTestBatchService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    await service.delete_batch(batch_id, actor_id=actor_id)
    return None
