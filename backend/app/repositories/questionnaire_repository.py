from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import QuestionnaireType, QuestionType
from app.repositories.tables import Question, Questionnaire


@dataclass(frozen=True)
class QuestionRecord:
    id: str
    questionnaire_id: str
    text: str
    type: QuestionType
    options: list[str] | None
    order_index: int
    step: int
    is_required: bool
    min_value: int | None
    max_value: int | None
    min_label: str | None
    max_label: str | None


@dataclass(frozen=True)
class QuestionnaireRecord:
    id: str
    title: str
    description: str | None
    type: QuestionnaireType
    is_active: bool


def _question_from_row(row: Question) -> QuestionRecord:
    return QuestionRecord(
        id=row.id,
        questionnaire_id=row.questionnaire_id,
        text=row.text,
        type=QuestionType(row.type),
        options=list(row.options) if row.options else None,
        order_index=row.order_index,
        step=row.step,
        is_required=row.is_required,
        min_value=row.min_value,
        max_value=row.max_value,
        min_label=row.min_label,
        max_label=row.max_label,
    )


def _questionnaire_from_row(row: Questionnaire) -> QuestionnaireRecord:
    return QuestionnaireRecord(
        id=row.id,
        title=row.title,
        description=row.description,
        type=QuestionnaireType(row.type),
        is_active=row.is_active,
    )


class QuestionnaireRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, questionnaire_id: str) -> QuestionnaireRecord | None:
        row = await self._session.get(Questionnaire, questionnaire_id)
        return _questionnaire_from_row(row) if row else None

    async def get_active(self, questionnaire_type: QuestionnaireType) -> QuestionnaireRecord | None:
        stmt = (
            select(Questionnaire)
            .where(Questionnaire.type == questionnaire_type, Questionnaire.is_active.is_(True))
            .order_by(Questionnaire.created_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _questionnaire_from_row(row) if row else None

    async def get_by_title(
        self, title: str, questionnaire_type: QuestionnaireType
    ) -> QuestionnaireRecord | None:
        stmt = select(Questionnaire).where(
            Questionnaire.title == title, Questionnaire.type == questionnaire_type
        )
        row = (await self._session.execute(stmt)).scalars().first()
        return _questionnaire_from_row(row) if row else None

    async def list_questions(
        self, questionnaire_id: str, *, step: int | None = None
    ) -> list[QuestionRecord]:
        stmt = select(Question).where(Question.questionnaire_id == questionnaire_id)
        if step is not None:
            stmt = stmt.where(Question.step == step)
        stmt = stmt.order_by(Question.order_index)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_question_from_row(row) for row in rows]

    async def question_ids(self, questionnaire_id: str) -> set[str]:
        stmt = select(Question.id).where(Question.questionnaire_id == questionnaire_id)
        return set((await self._session.execute(stmt)).scalars().all())

    async def steps(self, questionnaire_id: str) -> set[int]:
        stmt = select(distinct(Question.step)).where(Question.questionnaire_id == questionnaire_id)
        return set((await self._session.execute(stmt)).scalars().all())

    async def count_steps(self, questionnaire_id: str) -> int:
        stmt = select(func.count(func.distinct(Question.step))).where(
            Question.questionnaire_id == questionnaire_id
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def create_questionnaire(self, payload: dict[str, Any]) -> QuestionnaireRecord:
        row = Questionnaire(**payload)
        self._session.add(row)
        await self._session.flush()
        return _questionnaire_from_row(row)

    async def create_question(self, payload: dict[str, Any]) -> QuestionRecord:
        row = Question(**payload)
        self._session.add(row)
        await self._session.flush()
        return _question_from_row(row)
