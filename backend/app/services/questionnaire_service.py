from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import QuestionnaireType
from app.repositories.questionnaire_repository import (
    QuestionnaireRecord,
    QuestionnaireRepository,
    QuestionRecord,
)
from app.services.errors import NotFoundError


class QuestionnaireService:
    def __init__(self, session: AsyncSession, *, repo: QuestionnaireRepository | None = None) -> None:
        self.repo = repo or QuestionnaireRepository(session)

    async def find_active(self, questionnaire_type: QuestionnaireType) -> QuestionnaireRecord | None:
        return await self.repo.get_active(questionnaire_type)

    async def get_active(self, questionnaire_type: QuestionnaireType) -> QuestionnaireRecord:
        questionnaire = await self.repo.get_active(questionnaire_type)
        if questionnaire is None:
            raise NotFoundError(
                "questionnaire_not_found",
                f"No active {questionnaire_type.value} questionnaire found",
            )
        return questionnaire

    async def get(self, questionnaire_id: str) -> QuestionnaireRecord:
        questionnaire = await self.repo.get(questionnaire_id)
        if questionnaire is None:
            raise NotFoundError("questionnaire_not_found", "Questionnaire not found")
        return questionnaire

    async def list_questions(self, questionnaire_id: str) -> list[QuestionRecord]:
        return await self.repo.list_questions(questionnaire_id)

    async def questions_by_step(self, questionnaire_id: str, step: int) -> list[QuestionRecord]:
        return await self.repo.list_questions(questionnaire_id, step=step)

    async def total_steps(self, questionnaire_id: str) -> int:
        return await self.repo.count_steps(questionnaire_id)
