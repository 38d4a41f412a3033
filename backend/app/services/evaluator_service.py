from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import QuestionnaireType, QuestionType
from app.repositories.answer_repository import AnswerRepository
from app.repositories.evaluator_score_repository import EvaluatorScoreRepository
from app.services.assignment_service import AssignmentService
from app.services.errors import NotFoundError
from app.services.questionnaire_service import QuestionnaireService


@dataclass(frozen=True)
class QuestionResponse:
    question_id: str
    question_text: str
    question_type: QuestionType
    step: int
    order_index: int
    is_required: bool
    answer: str | None
    score: Decimal | None
    is_score_finalized: bool


@dataclass(frozen=True)
class StudentResponses:
    student_id: str
    questionnaire_id: str
    questionnaire_title: str
    questionnaire_type: QuestionnaireType
    submitted_at: str | None
    responses: list[QuestionResponse] = field(default_factory=list)


class EvaluatorService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        assignments: AssignmentService | None = None,
        questionnaires: QuestionnaireService | None = None,
        answer_repo: AnswerRepository | None = None,
        score_repo: EvaluatorScoreRepository | None = None,
    ) -> None:
        self.assignments = assignments or AssignmentService(session)
        self.questionnaires = questionnaires or QuestionnaireService(session)
        self.answer_repo = answer_repo or AnswerRepository(session)
        self.score_repo = score_repo or EvaluatorScoreRepository(session)

    async def student_responses(
        self,
        evaluator_id: str,
        student_id: str,
        questionnaire_type: QuestionnaireType,
    ) -> StudentResponses:
        """A student's submitted answers next to this evaluator's scores."""
        await self.assignments.require_assigned(evaluator_id, student_id)
        questionnaire = await self.questionnaires.get_active(questionnaire_type)
        if not await self.answer_repo.has_submitted(student_id, questionnaire.id):
            raise NotFoundError("not_submitted", "Student has not submitted this questionnaire")

        answers = {
            answer.question_id: answer
            for answer in await self.answer_repo.list_answers(student_id, questionnaire.id)
        }
        scores = {
            score.question_id: score
            for score in await self.score_repo.list_for_triple(
                student_id, questionnaire.id, evaluator_id
            )
        }
        responses = []
        for question in await self.questionnaires.list_questions(questionnaire.id):
            answer = answers.get(question.id)
            score = scores.get(question.id)
            responses.append(
                QuestionResponse(
                    question_id=question.id,
                    question_text=question.text,
                    question_type=question.type,
                    step=question.step,
                    order_index=question.order_index,
                    is_required=question.is_required,
                    answer=answer.value if answer else None,
                    score=score.score if score else None,
                    is_score_finalized=score.is_finalized if score else False,
                )
            )
        return StudentResponses(
            student_id=student_id,
            questionnaire_id=questionnaire.id,
            questionnaire_title=questionnaire.title,
            questionnaire_type=questionnaire.type,
            submitted_at=await self.answer_repo.submitted_at(student_id, questionnaire.id),
            responses=responses,
        )
