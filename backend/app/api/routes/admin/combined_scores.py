from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.admin_auth import AdminAuth, admin_actor_id
from app.clients.database import get_session
from app.models.admin import FinalizeCombinedRequest, RecalculateRequest
from app.repositories.combined_score_repository import CombinedScoreRecord
from app.services.score_aggregation import ScoreAggregationEngine

router = APIRouter(prefix="/students", tags=["admin-combined-scores"], dependencies=[AdminAuth])


def _engine(session: AsyncSession = Depends(get_session)) -> ScoreAggregationEngine:
    return ScoreAggregationEngine(session)


def _combined_response(record: CombinedScoreRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "questionId": record.question_id,
        "averageScore": float(record.average_score),
        "evaluatorCount": record.evaluator_count,
        "isFinalized": record.is_finalized,
        "updatedAt": record.updated_at,
    }


@router.get("/{student_id}/combined-scores")
async def list_combined_scores(
    student_id: str,
    questionnaire_id: str = Query(..., alias="questionnaireId"),
    engine: ScoreAggregationEngine = Depends(_engine),
):
    records = await engine.list_combined(student_id, questionnaire_id)
    return {
        "studentId": student_id,
        "questionnaireId": questionnaire_id,
        "scores": [_combined_response(record) for record in records],
    }


@router.post("/{student_id}/combined-scores/recalculate")
async def recalculate_combined_scores(
    student_id: str,
    payload: RecalculateRequest,
    engine: ScoreAggregationEngine = Depends(_engine),
    actor_id: str = Depends(admin_actor_id),
):
    records = await engine.recalculate(student_id, payload.questionnaireId, actor_id=actor_id)
    return {
        "studentId": student_id,
        "questionnaireId": payload.questionnaireId,
        "scores": [_combined_response(record) for record in records],
    }


@router.post("/{student_id}/finalize")
async def finalize_combined_scores(
    student_id: str,
    payload: FinalizeCombinedRequest,
    engine: ScoreAggregationEngine = Depends(_engine),
    actor_id: str = Depends(admin_actor_id),
):
    count = await engine.finalize_combined(student_id, payload.questionnaireId, actor_id=actor_id)
    return {"success": True, "message": f"Finalized {count} combined scores"}
