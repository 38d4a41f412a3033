from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import unit_of_work
from app.models.enums import QuestionnaireType
from app.repositories.answer_repository import AnswerRecord, AnswerRepository
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.post_test_batch_repository import PostTestBatchRepository
from app.repositories.questionnaire_repository import (
    QuestionnaireRecord,
    QuestionnaireRepository,
)
from app.repositories.tables import to_iso, utc_now
from app.services.audit_log_service import record_audit_entry
from app.services.errors import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.telemetry.tracing import emit_event

logger = logging.getLogger(__name__)


class AnswerService:
    """Student answers: drafts that lock for good on submit."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        repo: AnswerRepository | None = None,
        questionnaire_repo: QuestionnaireRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
        batch_repo: PostTestBatchRepository | None = None,
    ) -> None:
        self.session = session
        self.repo = repo or AnswerRepository(session)
        self.questionnaire_repo = questionnaire_repo or QuestionnaireRepository(session)
        self.audit_repo = audit_repo or AuditLogRepository(session)
        self.batch_repo = batch_repo or PostTestBatchRepository(session)

    async def _questionnaire(self, questionnaire_id: str) -> QuestionnaireRecord:
        questionnaire = await self.questionnaire_repo.get(questionnaire_id)
        if questionnaire is None:
            raise NotFoundError("questionnaire_not_found", "Questionnaire not found")
        return questionnaire

    async def ensure_available(self, user_id: str, questionnaire: QuestionnaireRecord) -> None:
        """The post-test opens inside an open batch window, once the pre-test is submitted."""
        if questionnaire.type is not QuestionnaireType.POSTTEST:
            return
        if await self.batch_repo.current_open(utc_now()) is None:
            raise UnauthorizedError(
                "posttest_unavailable", "Post-test is not currently available"
            )
        pretest = await self.questionnaire_repo.get_active(QuestionnaireType.PRETEST)
        if pretest is None or not await self.repo.has_submitted(user_id, pretest.id):
            raise InvalidStateError(
                "pretest_not_submitted", "Pre-test must be completed before the post-test"
            )

    async def save_answers(
        self,
        user_id: str,
        questionnaire_id: str,
        answers: dict[str, str | None],
    ) -> int:
        async with unit_of_work(self.session):
            questionnaire = await self._questionnaire(questionnaire_id)
            await self.ensure_available(user_id, questionnaire)
            if await self.repo.has_submitted(user_id, questionnaire.id):
                raise InvalidStateError("already_submitted", "Answers have already been submitted")
            known = await self.questionnaire_repo.question_ids(questionnaire.id)
            unknown = sorted(set(answers) - known)
            if unknown:
                raise ValidationError(
                    "unknown_question",
                    f"Question {unknown[0]} does not belong to this questionnaire",
                )
            for question_id, value in answers.items():
                if not await self.repo.upsert_draft(user_id, questionnaire.id, question_id, value):
                    raise InvalidStateError(
                        "already_submitted", "Answers have already been submitted"
                    )
            await record_audit_entry(
                self.audit_repo,
                actor_id=user_id,
                action="answers_saved",
                entity_type="answer",
                entity_id=questionnaire.id,
                details=f"{len(answers)} answers",
            )
        return len(answers)

    async def submit(self, user_id: str, questionnaire_id: str) -> str:
        submitted_at = datetime.now(timezone.utc)
        async with unit_of_work(self.session):
            questionnaire = await self._questionnaire(questionnaire_id)
            await self.ensure_available(user_id, questionnaire)
            if await self.repo.has_submitted(user_id, questionnaire.id):
                raise InvalidStateError("already_submitted", "Answers have already been submitted")
            count = await self.repo.submit_drafts(user_id, questionnaire.id, submitted_at)
            if count == 0:
                raise InvalidStateError("no_answers", "No answers to submit")
            await record_audit_entry(
                self.audit_repo,
                actor_id=user_id,
                action="questionnaire_submitted",
                entity_type="answer",
                entity_id=questionnaire.id,
                details=f"{count} answers",
                timestamp=submitted_at,
            )
        emit_event(
            "answers.submitted",
            student_id=user_id,
            questionnaire_id=questionnaire.id,
            actor_id=user_id,
            attributes={"answerCount": count, "type": questionnaire.type.value},
        )
        logger.info("User %s submitted questionnaire %s", user_id, questionnaire.id)
        return to_iso(submitted_at)

    async def list_answers(self, user_id: str, questionnaire_id: str) -> list[AnswerRecord]:
        return await self.repo.list_answers(user_id, questionnaire_id)

    async def has_submitted(self, user_id: str, questionnaire_id: str) -> bool:
        return await self.repo.has_submitted(user_id, questionnaire_id)

    async def submitted_at(self, user_id: str, questionnaire_id: str) -> str | None:
        return await self.repo.submitted_at(user_id, questionnaire_id)
