from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.admin_auth import AdminAuth
from app.clients.database import get_session
from app.services.material_service import MaterialService
from app.services.questionnaire_service import QuestionnaireService
from app.services.step_timing_service import StepTimingService

router = APIRouter(prefix="/students", tags=["admin-student-activity"], dependencies=[AdminAuth])


def _timings(session: AsyncSession = Depends(get_session)) -> StepTimingService:
    return StepTimingService(session)


def _questionnaires(session: AsyncSession = Depends(get_session)) -> QuestionnaireService:
    return QuestionnaireService(session)


def _materials(session: AsyncSession = Depends(get_session)) -> MaterialService:
    return MaterialService(session)


@router.get("/{student_id}/step-timings")
async def list_step_timings(
    student_id: str,
    questionnaire_id: str = Query(..., alias="questionnaireId"),
    questionnaires: QuestionnaireService = Depends(_questionnaires),
    timings: StepTimingService = Depends(_timings),
):
    await questionnaires.get(questionnaire_id)
    records = await timings.list_timings(student_id, questionnaire_id)
    return {
        "studentId": student_id,
        "questionnaireId": questionnaire_id,
        "timings": [
            {
                "step": record.step,
                "startTime": record.start_time,
                "endTime": record.end_time,
                "timeSpentSeconds": record.time_spent_seconds,
            }
            for record in records
        ],
        "totalSeconds": await timings.total_time_spent(student_id, questionnaire_id),
    }


@router.get("/{student_id}/material-accesses")
async def list_material_accesses(
    student_id: str,
    material_id: str | None = Query(None, alias="materialId"),
    materials: MaterialService = Depends(_materials),
):
    history = await materials.access_history(student_id, material_id)
    return {
        "studentId": student_id,
        "materialsAccessed": await materials.materials_accessed(student_id),
        "accesses": [
            {
                "id": access.id,
                "materialId": access.material_id,
                "accessedAt": access.accessed_at,
                "durationSeconds": access.duration_seconds,
                "completed": access.completed,
            }
            for access in history
        ],
    }
