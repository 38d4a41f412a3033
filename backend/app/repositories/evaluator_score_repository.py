from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import insert_ignoring_conflicts
from app.repositories.tables import EvaluatorScore, Question, to_iso, utc_now


@dataclass(frozen=True)
class EvaluatorScoreRecord:
    id: str
    student_id: str
    questionnaire_id: str
    question_id: str
    evaluator_id: str
    score: Decimal
    is_finalized: bool
    created_at: str | None
    updated_at: str | None


def _from_row(row: EvaluatorScore) -> EvaluatorScoreRecord:
    return EvaluatorScoreRecord(
        id=row.id,
        student_id=row.student_id,
        questionnaire_id=row.questionnaire_id,
        question_id=row.question_id,
        evaluator_id=row.evaluator_id,
        score=row.score,
        is_finalized=row.is_finalized,
        created_at=to_iso(row.created_at),
        updated_at=to_iso(row.updated_at),
    )


def _triple(student_id: str, questionnaire_id: str, evaluator_id: str):
    return (
        EvaluatorScore.student_id == student_id,
        EvaluatorScore.questionnaire_id == questionnaire_id,
        EvaluatorScore.evaluator_id == evaluator_id,
    )


class EvaluatorScoreRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def update_draft(
        self,
        *,
        student_id: str,
        questionnaire_id: str,
        question_id: str,
        evaluator_id: str,
        score: Decimal,
    ) -> bool:
        stmt = (
            update(EvaluatorScore)
            .where(
                *_triple(student_id, questionnaire_id, evaluator_id),
                EvaluatorScore.question_id == question_id,
                EvaluatorScore.is_finalized.is_(False),
            )
            .values(score=score, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return (await self._session.execute(stmt)).rowcount == 1

    async def insert_draft(
        self,
        *,
        student_id: str,
        questionnaire_id: str,
        question_id: str,
        evaluator_id: str,
        score: Decimal,
    ) -> bool:
        """Insert a draft score; False when a row already holds this key."""
        stmt = insert_ignoring_conflicts(self._session, EvaluatorScore).values(
            student_id=student_id,
            questionnaire_id=questionnaire_id,
            question_id=question_id,
            evaluator_id=evaluator_id,
            score=score,
            is_finalized=False,
        )
        return (await self._session.execute(stmt)).rowcount == 1

    async def get(
        self,
        *,
        student_id: str,
        questionnaire_id: str,
        question_id: str,
        evaluator_id: str,
    ) -> EvaluatorScoreRecord | None:
        stmt = (
            select(EvaluatorScore)
            .where(
                *_triple(student_id, questionnaire_id, evaluator_id),
                EvaluatorScore.question_id == question_id,
            )
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _from_row(row) if row else None

    async def count_for_triple(self, student_id: str, questionnaire_id: str, evaluator_id: str) -> int:
        stmt = select(func.count(EvaluatorScore.id)).where(
            *_triple(student_id, questionnaire_id, evaluator_id)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def finalize_drafts(self, student_id: str, questionnaire_id: str, evaluator_id: str) -> int:
        stmt = (
            update(EvaluatorScore)
            .where(
                *_triple(student_id, questionnaire_id, evaluator_id),
                EvaluatorScore.is_finalized.is_(False),
            )
            .values(is_finalized=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return (await self._session.execute(stmt)).rowcount

    async def list_for_triple(
        self, student_id: str, questionnaire_id: str, evaluator_id: str
    ) -> list[EvaluatorScoreRecord]:
        stmt = (
            select(EvaluatorScore)
            .join(Question, Question.id == EvaluatorScore.question_id)
            .where(*_triple(student_id, questionnaire_id, evaluator_id))
            .order_by(Question.order_index)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_from_row(row) for row in rows]

    async def list_finalized_for_pair(
        self, student_id: str, questionnaire_id: str
    ) -> list[EvaluatorScoreRecord]:
        stmt = (
            select(EvaluatorScore)
            .where(
                EvaluatorScore.student_id == student_id,
                EvaluatorScore.questionnaire_id == questionnaire_id,
                EvaluatorScore.is_finalized.is_(True),
            )
            .order_by(EvaluatorScore.question_id, EvaluatorScore.evaluator_id)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_from_row(row) for row in rows]
