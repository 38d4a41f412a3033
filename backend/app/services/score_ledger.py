from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import unit_of_work
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.evaluator_score_repository import (
    EvaluatorScoreRecord,
    EvaluatorScoreRepository,
)
from app.repositories.questionnaire_repository import QuestionnaireRepository
from app.services.audit_log_service import record_audit_entry
from app.services.errors import InvalidStateError, NotFoundError, ValidationError
from app.services.score_aggregation import SCORE_QUANTUM, ScoreAggregationEngine
from app.telemetry.otel import start_span
from app.telemetry.tracing import emit_event, emit_metric

logger = logging.getLogger(__name__)


def _quantize(score: Decimal | float | int | str) -> Decimal:
    return Decimal(str(score)).quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP)


class EvaluatorScoreLedger:
    """Per-evaluator scores for a student's questionnaire: drafts until finalized."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        repo: EvaluatorScoreRepository | None = None,
        questionnaire_repo: QuestionnaireRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        aggregation: ScoreAggregationEngine | None = None,
    ) -> None:
        self.session = session
        self.repo = repo or EvaluatorScoreRepository(session)
        self.questionnaire_repo = questionnaire_repo or QuestionnaireRepository(session)
        self.audit_repo = audit_repo or AuditLogRepository(session)
        self.aggregation = aggregation or ScoreAggregationEngine(session, audit_repo=self.audit_repo)

    async def save_score(
        self,
        student_id: str,
        question_id: str,
        questionnaire_id: str,
        evaluator_id: str,
        score: Decimal,
    ) -> EvaluatorScoreRecord:
        async with unit_of_work(self.session):
            record = await self._save_score(
                student_id, question_id, questionnaire_id, evaluator_id, score
            )
        return record

    async def _save_score(
        self,
        student_id: str,
        question_id: str,
        questionnaire_id: str,
        evaluator_id: str,
        score: Decimal,
    ) -> EvaluatorScoreRecord:
        key = {
            "student_id": student_id,
            "questionnaire_id": questionnaire_id,
            "question_id": question_id,
            "evaluator_id": evaluator_id,
        }
        value = _quantize(score)
        saved = await self.repo.update_draft(**key, score=value)
        if not saved and not await self.repo.insert_draft(**key, score=value):
            # Lost the insert to a concurrent writer, or the row is finalized.
            saved = await self.repo.update_draft(**key, score=value)
            if not saved:
                raise InvalidStateError("score_finalized", "Cannot update finalized score")
        record = await self.repo.get(**key)
        logger.info(
            "Saved score for student %s question %s by evaluator %s: %s",
            student_id,
            question_id,
            evaluator_id,
            value,
        )
        return record

    async def finalize(
        self,
        student_id: str,
        questionnaire_id: str,
        evaluator_id: str,
    ) -> int:
        async with unit_of_work(self.session):
            finalized, written = await self._finalize(student_id, questionnaire_id, evaluator_id)
        self._emit_finalized(student_id, questionnaire_id, evaluator_id, finalized, written)
        return finalized

    async def _finalize(
        self, student_id: str, questionnaire_id: str, evaluator_id: str
    ) -> tuple[int, int]:
        attributes = {
            "studentId": student_id,
            "questionnaireId": questionnaire_id,
            "evaluatorId": evaluator_id,
        }
        with start_span("scores.finalize", attributes):
            total = await self.repo.count_for_triple(student_id, questionnaire_id, evaluator_id)
            if total == 0:
                raise InvalidStateError("no_scores", "No scores to finalize")
            finalized = await self.repo.finalize_drafts(student_id, questionnaire_id, evaluator_id)
            if finalized != total:
                raise InvalidStateError("already_finalized", "Some scores are already finalized")
            await record_audit_entry(
                self.audit_repo,
                actor_id=evaluator_id,
                action="scores_finalized",
                entity_type="evaluator_score",
                entity_id=f"{student_id}:{questionnaire_id}",
                details=f"{finalized} scores",
            )
            written = await self.aggregation.recalculate_pending(
                student_id, questionnaire_id, actor_id=evaluator_id
            )
        logger.info(
            "Finalized scores for student %s questionnaire %s by evaluator %s",
            student_id,
            questionnaire_id,
            evaluator_id,
        )
        return finalized, written

    def _emit_finalized(
        self,
        student_id: str,
        questionnaire_id: str,
        evaluator_id: str,
        finalized: int,
        written: int,
    ) -> None:
        emit_metric(
            "scores.finalized_count",
            finalized,
            student_id=student_id,
            questionnaire_id=questionnaire_id,
            evaluator_id=evaluator_id,
            actor_id=evaluator_id,
        )
        emit_event(
            "scores.finalized",
            student_id=student_id,
            questionnaire_id=questionnaire_id,
            evaluator_id=evaluator_id,
            actor_id=evaluator_id,
            attributes={"scoreCount": finalized},
        )
        if written:
            emit_event(
                "combined.recalculated",
                student_id=student_id,
                questionnaire_id=questionnaire_id,
                evaluator_id=evaluator_id,
                actor_id=evaluator_id,
                attributes={"questionCount": written, "trigger": "evaluator_finalize"},
            )

    async def save_scores(
        self,
        student_id: str,
        questionnaire_id: str,
        evaluator_id: str,
        items: Iterable[tuple[str, Decimal]],
        *,
        finalize: bool = False,
    ) -> int:
        """Save a batch of (question_id, score) pairs and optionally finalize.

        The batch and the finalize commit together or not at all.
        """
        items = list(items)
        finalized = written = 0
        async with unit_of_work(self.session):
            questionnaire = await self.questionnaire_repo.get(questionnaire_id)
            if questionnaire is None:
                raise NotFoundError("questionnaire_not_found", "Questionnaire not found")
            known = await self.questionnaire_repo.question_ids(questionnaire_id)
            for question_id, _ in items:
                if question_id not in known:
                    raise ValidationError(
                        "unknown_question",
                        f"Question {question_id} does not belong to this questionnaire",
                    )
            for question_id, score in items:
                await self._save_score(student_id, question_id, questionnaire_id, evaluator_id, score)
            if finalize:
                finalized, written = await self._finalize(student_id, questionnaire_id, evaluator_id)
        if finalize:
            self._emit_finalized(student_id, questionnaire_id, evaluator_id, finalized, written)
        return len(items)

    async def list_scores(
        self, student_id: str, questionnaire_id: str, evaluator_id: str
    ) -> list[EvaluatorScoreRecord]:
        return await self.repo.list_for_triple(student_id, questionnaire_id, evaluator_id)
