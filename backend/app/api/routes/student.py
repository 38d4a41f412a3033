from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.principal import StudentPrincipal
from app.clients.database import get_session
from app.models.enums import MaterialType, QuestionnaireType
from app.models.questionnaire import (
    SaveAnswersRequest,
    StepTimingRequest,
    TrackMaterialAccessRequest,
)
from app.repositories.material_repository import MaterialRecord
from app.repositories.questionnaire_repository import QuestionRecord
from app.repositories.user_repository import UserRecord
from app.services.answer_service import AnswerService
from app.services.material_service import MaterialService
from app.services.questionnaire_service import QuestionnaireService
from app.services.step_timing_service import StepTimingService

router = APIRouter(prefix="/student", tags=["student"])


def _questionnaires(session: AsyncSession = Depends(get_session)) -> QuestionnaireService:
    return QuestionnaireService(session)


def _answers(session: AsyncSession = Depends(get_session)) -> AnswerService:
    return AnswerService(session)


def _materials(session: AsyncSession = Depends(get_session)) -> MaterialService:
    return MaterialService(session)


def _step_timings(session: AsyncSession = Depends(get_session)) -> StepTimingService:
    return StepTimingService(session)


def _question_response(question: QuestionRecord) -> dict[str, Any]:
    return {
        "id": question.id,
        "text": question.text,
        "type": question.type.value,
        "options": question.options,
        "orderIndex": question.order_index,
        "step": question.step,
        "isRequired": question.is_required,
        "minValue": question.min_value,
        "maxValue": question.max_value,
        "minLabel": question.min_label,
        "maxLabel": question.max_label,
    }


def _material_response(material: MaterialRecord, access_count: int) -> dict[str, Any]:
    return {
        "id": material.id,
        "title": material.title,
        "description": material.description,
        "type": material.type.value,
        "fileExtension": material.file_extension,
        "fileSizeBytes": material.file_size_bytes,
        "orderIndex": material.order_index,
        "accessCount": access_count,
    }


@router.get("/status")
async def get_status(
    student: UserRecord = StudentPrincipal,
    questionnaires: QuestionnaireService = Depends(_questionnaires),
    answers: AnswerService = Depends(_answers),
    materials: MaterialService = Depends(_materials),
):
    progress: dict[str, Any] = {}
    for questionnaire_type in QuestionnaireType:
        completed = False
        completed_at = None
        questionnaire = await questionnaires.find_active(questionnaire_type)
        if questionnaire is not None:
            completed = await answers.has_submitted(student.id, questionnaire.id)
            if completed:
                completed_at = await answers.submitted_at(student.id, questionnaire.id)
        progress[f"{questionnaire_type.value}Completed"] = completed
        progress[f"{questionnaire_type.value}CompletedAt"] = completed_at
    progress["materialsAccessed"] = await materials.materials_accessed(student.id)
    return progress


@router.get("/questionnaires/{questionnaire_type}")
async def get_questionnaire(
    questionnaire_type: QuestionnaireType,
    step: int | None = Query(None, ge=1),
    student: UserRecord = StudentPrincipal,
    questionnaires: QuestionnaireService = Depends(_questionnaires),
    answers: AnswerService = Depends(_answers),
):
    questionnaire = await questionnaires.get_active(questionnaire_type)
    await answers.ensure_available(student.id, questionnaire)
    if step is None:
        questions = await questionnaires.list_questions(questionnaire.id)
    else:
        questions = await questionnaires.questions_by_step(questionnaire.id, step)
    saved = await answers.list_answers(student.id, questionnaire.id)
    return {
        "id": questionnaire.id,
        "title": questionnaire.title,
        "description": questionnaire.description,
        "type": questionnaire.type.value,
        "questions": [_question_response(question) for question in questions],
        "answers": [{"questionId": answer.question_id, "value": answer.value} for answer in saved],
        "totalSteps": await questionnaires.total_steps(questionnaire.id),
        "isSubmitted": any(answer.is_submitted for answer in saved),
    }


@router.post("/questionnaires/{questionnaire_type}/answers")
async def save_answers(
    questionnaire_type: QuestionnaireType,
    payload: SaveAnswersRequest,
    student: UserRecord = StudentPrincipal,
    questionnaires: QuestionnaireService = Depends(_questionnaires),
    answers: AnswerService = Depends(_answers),
):
    questionnaire = await questionnaires.get_active(questionnaire_type)
    await answers.save_answers(student.id, questionnaire.id, payload.answers)
    return {"success": True, "message": "Answers saved successfully"}


@router.post("/questionnaires/{questionnaire_type}/submit")
async def submit_questionnaire(
    questionnaire_type: QuestionnaireType,
    student: UserRecord = StudentPrincipal,
    questionnaires: QuestionnaireService = Depends(_questionnaires),
    answers: AnswerService = Depends(_answers),
):
    questionnaire = await questionnaires.get_active(questionnaire_type)
    submitted_at = await answers.submit(student.id, questionnaire.id)
    return {
        "success": True,
        "message": "Questionnaire submitted successfully",
        "submittedAt": submitted_at,
    }


@router.post("/step-timing", status_code=status.HTTP_204_NO_CONTENT)
async def record_step_timing(
    payload: StepTimingRequest,
    student: UserRecord = StudentPrincipal,
    questionnaires: QuestionnaireService = Depends(_questionnaires),
    answers: AnswerService = Depends(_answers),
    timings: StepTimingService = Depends(_step_timings),
):
    questionnaire = await questionnaires.get_active(payload.type)
    await answers.ensure_available(student.id, questionnaire)
    if payload.isStart:
        await timings.start_step(student.id, questionnaire.id, payload.step)
    else:
        await timings.end_step(student.id, questionnaire.id, payload.step)
    return None


@router.get("/materials")
async def list_materials(
    material_type: MaterialType | None = Query(None, alias="type"),
    student: UserRecord = StudentPrincipal,
    materials: MaterialService = Depends(_materials),
):
    await materials.ensure_unlocked(student.id)
    items = await materials.list_materials(material_type)
    counts = await materials.access_counts_for_user(student.id)
    return {"materials": [_material_response(item, counts.get(item.id, 0)) for item in items]}


@router.get("/materials/{material_id}")
async def get_material(
    material_id: str,
    student: UserRecord = StudentPrincipal,
    materials: MaterialService = Depends(_materials),
):
    await materials.ensure_unlocked(student.id)
    material = await materials.get_material(material_id)
    history = await materials.access_history(student.id, material.id)
    response = _material_response(material, len(history))
    response["totalTimeSpentSeconds"] = await materials.total_time_spent(student.id, material.id)
    response["completed"] = any(access.completed for access in history)
    return response


@router.post("/materials/{material_id}/track", status_code=status.HTTP_204_NO_CONTENT)
async def track_material_access(
    material_id: str,
    payload: TrackMaterialAccessRequest,
    student: UserRecord = StudentPrincipal,
    materials: MaterialService = Depends(_materials),
):
    await materials.track_access(
        student.id,
        material_id,
        duration_seconds=payload.durationSeconds,
        completed=payload.completed,
    )
    return None
