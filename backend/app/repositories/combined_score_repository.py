from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import insert_ignoring_conflicts
from app.repositories.tables import CombinedScore, Question, to_iso, utc_now


@dataclass(frozen=True)
class CombinedScoreRecord:
    id: str
    student_id: str
    questionnaire_id: str
    question_id: str
    average_score: Decimal
    evaluator_count: int
    is_finalized: bool
    updated_at: str | None


def _from_row(row: CombinedScore) -> CombinedScoreRecord:
    return CombinedScoreRecord(
        id=row.id,
        student_id=row.student_id,
        questionnaire_id=row.questionnaire_id,
        question_id=row.question_id,
        average_score=row.average_score,
        evaluator_count=row.evaluator_count,
        is_finalized=row.is_finalized,
        updated_at=to_iso(row.updated_at),
    )


def _pair(student_id: str, questionnaire_id: str):
    return (
        CombinedScore.student_id == student_id,
        CombinedScore.questionnaire_id == questionnaire_id,
    )


class CombinedScoreRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_pair(self, student_id: str, questionnaire_id: str) -> list[CombinedScoreRecord]:
        stmt = (
            select(CombinedScore)
            .join(Question, Question.id == CombinedScore.question_id)
            .where(*_pair(student_id, questionnaire_id))
            .order_by(Question.order_index)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_from_row(row) for row in rows]

    async def insert_draft(
        self,
        *,
        student_id: str,
        questionnaire_id: str,
        question_id: str,
        average_score: Decimal,
        evaluator_count: int,
    ) -> bool:
        stmt = insert_ignoring_conflicts(self._session, CombinedScore).values(
            student_id=student_id,
            questionnaire_id=questionnaire_id,
            question_id=question_id,
            average_score=average_score,
            evaluator_count=evaluator_count,
            is_finalized=False,
        )
        return (await self._session.execute(stmt)).rowcount == 1

    async def update_draft(
        self,
        *,
        student_id: str,
        questionnaire_id: str,
        question_id: str,
        average_score: Decimal,
        evaluator_count: int,
    ) -> bool:
        stmt = (
            update(CombinedScore)
            .where(
                *_pair(student_id, questionnaire_id),
                CombinedScore.question_id == question_id,
                CombinedScore.is_finalized.is_(False),
            )
            .values(
                average_score=average_score,
                evaluator_count=evaluator_count,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return (await self._session.execute(stmt)).rowcount == 1

    async def count_for_pair(self, student_id: str, questionnaire_id: str) -> int:
        stmt = select(func.count(CombinedScore.id)).where(*_pair(student_id, questionnaire_id))
        return int((await self._session.execute(stmt)).scalar_one())

    async def finalize_drafts(self, student_id: str, questionnaire_id: str) -> int:
        stmt = (
            update(CombinedScore)
            .where(*_pair(student_id, questionnaire_id), CombinedScore.is_finalized.is_(False))
            .values(is_finalized=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return (await self._session.execute(stmt)).rowcount
