from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import unit_of_work
from app.repositories.questionnaire_repository import QuestionnaireRepository
from app.repositories.step_timing_repository import StepTimingRecord, StepTimingRepository
from app.repositories.tables import utc_now
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class StepTimingService:
    """Wall-clock time a student spends on each questionnaire step.

    A step is timed once: the first start wins and later starts are ignored,
    and only an open timing can be ended.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        repo: StepTimingRepository | None = None,
        questionnaire_repo: QuestionnaireRepository | None = None,
    ) -> None:
        self.session = session
        self.repo = repo or StepTimingRepository(session)
        self.questionnaire_repo = questionnaire_repo or QuestionnaireRepository(session)

    async def _require_step(self, questionnaire_id: str, step: int) -> None:
        if await self.questionnaire_repo.get(questionnaire_id) is None:
            raise NotFoundError("questionnaire_not_found", "Questionnaire not found")
        steps = await self.questionnaire_repo.steps(questionnaire_id)
        if step not in steps:
            raise ValidationError("unknown_step", f"Step {step} does not exist in this questionnaire")

    async def start_step(self, user_id: str, questionnaire_id: str, step: int) -> bool:
        async with unit_of_work(self.session):
            await self._require_step(questionnaire_id, step)
            started = await self.repo.start(user_id, questionnaire_id, step, utc_now())
        if started:
            logger.info("User %s started step %s of %s", user_id, step, questionnaire_id)
        return started

    async def end_step(
        self, user_id: str, questionnaire_id: str, step: int
    ) -> StepTimingRecord | None:
        async with unit_of_work(self.session):
            await self._require_step(questionnaire_id, step)
            record = await self.repo.close(user_id, questionnaire_id, step, utc_now())
        if record is not None:
            logger.info(
                "User %s finished step %s of %s in %ss",
                user_id,
                step,
                questionnaire_id,
                record.time_spent_seconds,
            )
        return record

    async def list_timings(self, user_id: str, questionnaire_id: str) -> list[StepTimingRecord]:
        return await self.repo.list_timings(user_id, questionnaire_id)

    async def total_time_spent(self, user_id: str, questionnaire_id: str) -> int | None:
        return await self.repo.total_seconds(user_id, questionnaire_id)
