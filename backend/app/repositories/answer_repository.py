from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import insert_ignoring_conflicts
from app.repositories.tables import Answer, to_iso, utc_now


@dataclass(frozen=True)
class AnswerRecord:
    id: str
    user_id: str
    questionnaire_id: str
    question_id: str
    value: str | None
    is_submitted: bool
    submitted_at: str | None
    updated_at: str | None


def _from_row(row: Answer) -> AnswerRecord:
    return AnswerRecord(
        id=row.id,
        user_id=row.user_id,
        questionnaire_id=row.questionnaire_id,
        question_id=row.question_id,
        value=row.value,
        is_submitted=row.is_submitted,
        submitted_at=to_iso(row.submitted_at),
        updated_at=to_iso(row.updated_at),
    )


def _pair(user_id: str, questionnaire_id: str):
    return (Answer.user_id == user_id, Answer.questionnaire_id == questionnaire_id)


class AnswerRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_answers(self, user_id: str, questionnaire_id: str) -> list[AnswerRecord]:
        stmt = (
            select(Answer)
            .where(*_pair(user_id, questionnaire_id))
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_from_row(row) for row in rows]

    async def has_submitted(self, user_id: str, questionnaire_id: str) -> bool:
        stmt = (
            select(Answer.id)
            .where(*_pair(user_id, questionnaire_id), Answer.is_submitted.is_(True))
            .limit(1)
        )
        return (await self._session.execute(stmt)).first() is not None

    async def submitted_at(self, user_id: str, questionnaire_id: str) -> str | None:
        stmt = select(func.max(Answer.submitted_at)).where(
            *_pair(user_id, questionnaire_id), Answer.is_submitted.is_(True)
        )
        return to_iso((await self._session.execute(stmt)).scalar_one_or_none())

    async def upsert_draft(
        self, user_id: str, questionnaire_id: str, question_id: str, value: str | None
    ) -> bool:
        """Write a draft answer; False when the stored answer is already submitted."""
        updated = await self._update_draft(user_id, questionnaire_id, question_id, value)
        if updated:
            return True
        stmt = insert_ignoring_conflicts(self._session, Answer).values(
            user_id=user_id,
            questionnaire_id=questionnaire_id,
            question_id=question_id,
            value=value,
            is_submitted=False,
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 1:
            return True
        return await self._update_draft(user_id, questionnaire_id, question_id, value)

    async def _update_draft(
        self, user_id: str, questionnaire_id: str, question_id: str, value: str | None
    ) -> bool:
        stmt = (
            update(Answer)
            .where(
                *_pair(user_id, questionnaire_id),
                Answer.question_id == question_id,
                Answer.is_submitted.is_(False),
            )
            .values(value=value, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def submit_drafts(
        self, user_id: str, questionnaire_id: str, submitted_at: datetime
    ) -> int:
        stmt = (
            update(Answer)
            .where(*_pair(user_id, questionnaire_id), Answer.is_submitted.is_(False))
            .values(is_submitted=True, submitted_at=submitted_at, updated_at=submitted_at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount
