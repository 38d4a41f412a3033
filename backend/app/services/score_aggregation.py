from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import unit_of_work
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.combined_score_repository import (
    CombinedScoreRecord,
    CombinedScoreRepository,
)
from app.repositories.evaluator_score_repository import (
    EvaluatorScoreRecord,
    EvaluatorScoreRepository,
)
from app.repositories.questionnaire_repository import QuestionnaireRepository
from app.repositories.user_repository import UserRepository
from app.services.audit_log_service import record_audit_entry
from app.services.errors import InvalidStateError, NotFoundError
from app.telemetry.otel import start_span
from app.telemetry.tracing import emit_event

logger = logging.getLogger(__name__)

SCORE_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class Aggregate:
    average_score: Decimal
    evaluator_count: int


def aggregate_scores(rows: Iterable[EvaluatorScoreRecord]) -> dict[str, Aggregate]:
    """Group scores by question: mean rounded half-up to 2 places, and count."""
    grouped: dict[str, list[Decimal]] = defaultdict(list)
    for row in rows:
        grouped[row.question_id].append(Decimal(row.score))
    aggregates: dict[str, Aggregate] = {}
    for question_id, scores in grouped.items():
        mean = sum(scores, Decimal(0)) / len(scores)
        aggregates[question_id] = Aggregate(
            average_score=mean.quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP),
            evaluator_count=len(scores),
        )
    return aggregates


def _matches(existing: dict[str, CombinedScoreRecord], aggregates: dict[str, Aggregate]) -> bool:
    if set(existing) != set(aggregates):
        return False
    for question_id, aggregate in aggregates.items():
        stored = existing[question_id]
        if Decimal(stored.average_score) != aggregate.average_score:
            return False
        if stored.evaluator_count != aggregate.evaluator_count:
            return False
    return True


def _locked() -> InvalidStateError:
    return InvalidStateError(
        "combined_finalized", "Combined scores are finalized and cannot be recalculated"
    )


class ScoreAggregationEngine:
    def __init__(
        self,
        session: AsyncSession,
        *,
        score_repo: EvaluatorScoreRepository | None = None,
        combined_repo: CombinedScoreRepository | None = None,
        user_repo: UserRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        questionnaire_repo: QuestionnaireRepository | None = None,
    ) -> None:
        self.session = session
        self.score_repo = score_repo or EvaluatorScoreRepository(session)
        self.combined_repo = combined_repo or CombinedScoreRepository(session)
        self.user_repo = user_repo or UserRepository(session)
        self.audit_repo = audit_repo or AuditLogRepository(session)
        self.questionnaire_repo = questionnaire_repo or QuestionnaireRepository(session)

    async def _require_questionnaire(self, questionnaire_id: str) -> None:
        if await self.questionnaire_repo.get(questionnaire_id) is None:
            raise NotFoundError("questionnaire_not_found", "Questionnaire not found")

    async def recalculate(
        self, student_id: str, questionnaire_id: str, *, actor_id: str | None = None
    ) -> list[CombinedScoreRecord]:
        async with unit_of_work(self.session):
            await self._require_questionnaire(questionnaire_id)
            written = await self.recalculate_pending(student_id, questionnaire_id, actor_id=actor_id)
        emit_event(
            "combined.recalculated",
            student_id=student_id,
            questionnaire_id=questionnaire_id,
            actor_id=actor_id,
            attributes={"questionCount": written, "trigger": "admin"},
        )
        return await self.list_combined(student_id, questionnaire_id)

    async def recalculate_pending(
        self, student_id: str, questionnaire_id: str, *, actor_id: str | None
    ) -> int:
        """Rebuild combined scores inside the caller's transaction.

        Returns the number of combined rows written; 0 when there is nothing
        finalized yet or the stored values already match.
        """
        attributes = {"studentId": student_id, "questionnaireId": questionnaire_id}
        with start_span("combined.recalculate", attributes) as span:
            student = await self.user_repo.lock_user(student_id)
            if student is None:
                raise NotFoundError("student_not_found", "Student not found")
            rows = await self.score_repo.list_finalized_for_pair(student_id, questionnaire_id)
            aggregates = aggregate_scores(rows)
            if not aggregates:
                logger.info(
                    "No finalized scores for student %s questionnaire %s",
                    student_id,
                    questionnaire_id,
                )
                return 0
            existing = {
                record.question_id: record
                for record in await self.combined_repo.list_for_pair(student_id, questionnaire_id)
            }
            if any(record.is_finalized for record in existing.values()):
                if _matches(existing, aggregates):
                    return 0
                raise _locked()
            for question_id, aggregate in aggregates.items():
                values = {
                    "student_id": student_id,
                    "questionnaire_id": questionnaire_id,
                    "question_id": question_id,
                    "average_score": aggregate.average_score,
                    "evaluator_count": aggregate.evaluator_count,
                }
                if question_id in existing or not await self.combined_repo.insert_draft(**values):
                    if not await self.combined_repo.update_draft(**values):
                        raise _locked()
            await record_audit_entry(
                self.audit_repo,
                actor_id=actor_id,
                action="combined_scores_recalculated",
                entity_type="combined_score",
                entity_id=f"{student_id}:{questionnaire_id}",
                details=f"{len(aggregates)} questions",
            )
            span["attributes"]["questionCount"] = len(aggregates)
        logger.info(
            "Recalculated combined scores for student %s questionnaire %s",
            student_id,
            questionnaire_id,
        )
        return len(aggregates)

    async def finalize_combined(
        self, student_id: str, questionnaire_id: str, *, actor_id: str | None = None
    ) -> int:
        async with unit_of_work(self.session):
            await self._require_questionnaire(questionnaire_id)
            total = await self.combined_repo.count_for_pair(student_id, questionnaire_id)
            if total == 0:
                raise InvalidStateError("no_combined_scores", "No combined scores to finalize")
            finalized = await self.combined_repo.finalize_drafts(student_id, questionnaire_id)
            if finalized != total:
                raise InvalidStateError(
                    "combined_already_finalized", "Some combined scores are already finalized"
                )
            await record_audit_entry(
                self.audit_repo,
                actor_id=actor_id,
                action="combined_scores_finalized",
                entity_type="combined_score",
                entity_id=f"{student_id}:{questionnaire_id}",
                details=f"{finalized} questions",
            )
        emit_event(
            "combined.finalized",
            student_id=student_id,
            questionnaire_id=questionnaire_id,
            actor_id=actor_id,
            attributes={"questionCount": finalized},
        )
        logger.info(
            "Finalized combined scores for student %s questionnaire %s",
            student_id,
            questionnaire_id,
        )
        return finalized

    async def list_combined(self, student_id: str, questionnaire_id: str) -> list[CombinedScoreRecord]:
        await self._require_questionnaire(questionnaire_id)
        return await self.combined_repo.list_for_pair(student_id, questionnaire_id)
