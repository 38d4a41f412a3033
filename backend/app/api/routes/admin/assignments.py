from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.admin_auth import AdminAuth, admin_actor_id
from app.clients.database import get_session
from app.models.admin import AssignmentCreate, BulkAssignmentCreate
from app.repositories.assignment_repository import AssignmentInfo, AssignmentRecord
from app.repositories.user_repository import UserRecord
from app.services.assignment_service import AssignmentService

router = APIRouter(
    prefix="/evaluator-assignments", tags=["admin-assignments"], dependencies=[AdminAuth]
)


def _service(session: AsyncSession = Depends(get_session)) -> AssignmentService:
    return AssignmentService(session)


def _assignment_response(record: AssignmentRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "evaluatorId": record.evaluator_id,
        "studentId": record.student_id,
        "isActive": record.is_active,
        "assignedAt": record.assigned_at,
    }


def _assignment_info_response(info: AssignmentInfo) -> dict[str, Any]:
    return {
        "id": info.id,
        "evaluatorId": info.evaluator_id,
        "evaluatorName": info.evaluator_name,
        "evaluatorEmail": info.evaluator_email,
        "studentId": info.student_id,
        "studentName": info.student_name,
        "studentEmail": info.student_email,
        "assignedAt": info.assigned_at,
    }


def _student_response(user: UserRecord) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "hospital": user.hospital,
    }


@router.get("")
async def list_assignments(service: AssignmentService = Depends(_service)):
    items = await service.list_assignments()
    return {"assignments": [_assignment_info_response(item) for item in items]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: AssignmentCreate,
    service: AssignmentService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    record = await service.assign(payload.evaluatorId, payload.studentId, actor_id=actor_id)
    return _assignment_response(record)


@router.post("/bulk")
async def bulk_create_assignments(
    payload: BulkAssignmentCreate,
    service: AssignmentService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    result = await service.bulk_assign(payload.evaluatorId, payload.studentIds, actor_id=actor_id)
    return {"successCount": result.success_count, "errors": result.errors}


@router.get("/counts")
async def assignment_counts(service: AssignmentService = Depends(_service)):
    return {"counts": await service.assignment_counts()}


@router.get("/unassigned-students")
async def unassigned_students(service: AssignmentService = Depends(_service)):
    students = await service.unassigned_students()
    return {"students": [_student_response(student) for student in students]}


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: str,
    service: AssignmentService = Depends(_service),
    actor_id: str = Depends(admin_actor_id),
):
    await service.deactivate_by_id(assignment_id, actor_id=actor_id)
    return None
