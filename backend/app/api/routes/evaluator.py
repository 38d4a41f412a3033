from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.principal import EvaluatorPrincipal
from app.clients.database import get_session
from app.models.enums import QuestionnaireType
from app.models.scoring import SaveScoresRequest
from app.repositories.evaluator_score_repository import EvaluatorScoreRecord
from app.repositories.user_repository import UserRecord
from app.services.assignment_service import AssignmentService
from app.services.evaluator_service import EvaluatorService, StudentResponses
from app.services.score_ledger import EvaluatorScoreLedger

router = APIRouter(prefix="/evaluator", tags=["evaluator"])


def _assignments(session: AsyncSession = Depends(get_session)) -> AssignmentService:
    return AssignmentService(session)


def _evaluator_service(session: AsyncSession = Depends(get_session)) -> EvaluatorService:
    return EvaluatorService(session)


def _ledger(session: AsyncSession = Depends(get_session)) -> EvaluatorScoreLedger:
    return EvaluatorScoreLedger(session)


def _student_response(user: UserRecord) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "hospital": user.hospital,
    }


def _score_response(record: EvaluatorScoreRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "questionId": record.question_id,
        "score": float(record.score),
        "isFinalized": record.is_finalized,
        "updatedAt": record.updated_at,
    }


def _responses_response(result: StudentResponses) -> dict[str, Any]:
    return {
        "studentId": result.student_id,
        "questionnaireId": result.questionnaire_id,
        "questionnaireTitle": result.questionnaire_title,
        "questionnaireType": result.questionnaire_type.value,
        "submittedAt": result.submitted_at,
        "responses": [
            {
                "questionId": item.question_id,
                "questionText": item.question_text,
                "questionType": item.question_type.value,
                "step": item.step,
                "orderIndex": item.order_index,
                "isRequired": item.is_required,
                "answer": item.answer,
                "score": float(item.score) if item.score is not None else None,
                "isScoreFinalized": item.is_score_finalized,
            }
            for item in result.responses
        ],
    }


@router.get("/students")
async def list_assigned_students(
    evaluator: UserRecord = EvaluatorPrincipal,
    assignments: AssignmentService = Depends(_assignments),
):
    students = await assignments.list_assigned_students(evaluator.id)
    return {"students": [_student_response(student) for student in students]}


@router.get("/students/{student_id}/responses")
async def get_student_responses(
    student_id: str,
    questionnaire_type: QuestionnaireType = Query(QuestionnaireType.PRETEST, alias="type"),
    evaluator: UserRecord = EvaluatorPrincipal,
    service: EvaluatorService = Depends(_evaluator_service),
):
    result = await service.student_responses(evaluator.id, student_id, questionnaire_type)
    return _responses_response(result)


@router.get("/students/{student_id}/scores")
async def list_scores(
    student_id: str,
    questionnaire_id: str = Query(..., alias="questionnaireId"),
    evaluator: UserRecord = EvaluatorPrincipal,
    assignments: AssignmentService = Depends(_assignments),
    ledger: EvaluatorScoreLedger = Depends(_ledger),
):
    await assignments.require_assigned(evaluator.id, student_id)
    records = await ledger.list_scores(student_id, questionnaire_id, evaluator.id)
    return {"scores": [_score_response(record) for record in records]}


@router.post("/students/{student_id}/scores")
async def save_scores(
    student_id: str,
    payload: SaveScoresRequest,
    evaluator: UserRecord = EvaluatorPrincipal,
    assignments: AssignmentService = Depends(_assignments),
    ledger: EvaluatorScoreLedger = Depends(_ledger),
):
    await assignments.require_assigned(evaluator.id, student_id)
    await ledger.save_scores(
        student_id,
        payload.questionnaireId,
        evaluator.id,
        [(item.questionId, item.score) for item in payload.scores],
        finalize=payload.finalize,
    )
    message = (
        "Scores saved and finalized successfully" if payload.finalize else "Scores saved successfully"
    )
    return {"success": True, "message": message}
