import asyncio
import json
from decimal import Decimal

import pytest
import pytest_asyncio

from app.clients.database import session_factory
from app.models.enums import QuestionnaireType, Role
from app.repositories.audit_log_repository import AuditLogRepository
from app.services.errors import InvalidStateError, NotFoundError, ValidationError
from app.services.score_aggregation import ScoreAggregationEngine
from app.services.score_ledger import EvaluatorScoreLedger


@pytest_asyncio.fixture
async def scoring(session, factory):
    student = await factory.user(Role.STUDENT)
    evaluator = await factory.user(Role.EVALUATOR)
    questionnaire, questions = await factory.questionnaire(questions=3)
    return student, evaluator, questionnaire, questions


@pytest.mark.asyncio
async def test_save_score_overwrites_draft(session, scoring):
    student, evaluator, questionnaire, questions = scoring
    ledger = EvaluatorScoreLedger(session)

    first = await ledger.save_score(
        student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("4.50")
    )
    second = await ledger.save_score(
        student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("3.25")
    )

    assert second.id == first.id
    assert second.score == Decimal("3.25")
    assert second.is_finalized is False
    scores = await ledger.list_scores(student.id, questionnaire.id, evaluator.id)
    assert len(scores) == 1


@pytest.mark.asyncio
async def test_finalized_score_cannot_change(session, scoring):
    student, evaluator, questionnaire, questions = scoring
    ledger = EvaluatorScoreLedger(session)
    await ledger.save_score(student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("4"))
    await ledger.finalize(student.id, questionnaire.id, evaluator.id)

    with pytest.raises(InvalidStateError) as exc:
        await ledger.save_score(
            student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("1")
        )

    assert exc.value.reason == "score_finalized"
    assert str(exc.value) == "Cannot update finalized score"
    scores = await ledger.list_scores(student.id, questionnaire.id, evaluator.id)
    assert [(s.score, s.is_finalized) for s in scores] == [(Decimal("4.00"), True)]


@pytest.mark.asyncio
async def test_finalize_requires_scores(session, scoring):
    student, evaluator, questionnaire, _ = scoring

    with pytest.raises(InvalidStateError) as exc:
        await EvaluatorScoreLedger(session).finalize(student.id, questionnaire.id, evaluator.id)

    assert exc.value.reason == "no_scores"


@pytest.mark.asyncio
async def test_finalize_twice_is_rejected(session, scoring):
    student, evaluator, questionnaire, questions = scoring
    ledger = EvaluatorScoreLedger(session)
    await ledger.save_score(student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("4"))
    assert await ledger.finalize(student.id, questionnaire.id, evaluator.id) == 1

    with pytest.raises(InvalidStateError) as exc:
        await ledger.finalize(student.id, questionnaire.id, evaluator.id)

    assert exc.value.reason == "already_finalized"


@pytest.mark.asyncio
async def test_finalize_with_new_draft_after_finalize_rolls_back(session, scoring):
    student, evaluator, questionnaire, questions = scoring
    ledger = EvaluatorScoreLedger(session)
    await ledger.save_score(student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("4"))
    await ledger.finalize(student.id, questionnaire.id, evaluator.id)
    await ledger.save_score(student.id, questions[1].id, questionnaire.id, evaluator.id, Decimal("2"))

    with pytest.raises(InvalidStateError) as exc:
        await ledger.finalize(student.id, questionnaire.id, evaluator.id)

    assert exc.value.reason == "already_finalized"
    scores = await ledger.list_scores(student.id, questionnaire.id, evaluator.id)
    assert [s.is_finalized for s in scores] == [True, False]


@pytest.mark.asyncio
async def test_finalize_recalculates_and_audits(session, scoring, caplog):
    caplog.set_level("INFO")
    student, evaluator, questionnaire, questions = scoring
    ledger = EvaluatorScoreLedger(session)
    await ledger.save_score(student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("4.50"))
    await ledger.save_score(student.id, questions[1].id, questionnaire.id, evaluator.id, Decimal("3.00"))

    await ledger.finalize(student.id, questionnaire.id, evaluator.id)

    combined = await ScoreAggregationEngine(session).list_combined(student.id, questionnaire.id)
    assert [(c.question_id, c.average_score, c.evaluator_count) for c in combined] == [
        (questions[0].id, Decimal("4.50"), 1),
        (questions[1].id, Decimal("3.00"), 1),
    ]
    actions = {entry.action for entry in await AuditLogRepository(session).list_entries()}
    assert {"scores_finalized", "combined_scores_recalculated"} <= actions
    messages = [record.message for record in caplog.records if record.name == "app.telemetry"]
    assert any('"scores.finalized_count"' in message for message in messages)
    finalized = [json.loads(m) for m in messages if '"scores.finalized"' in m]
    assert finalized[-1]["evaluatorId"] == evaluator.id


@pytest.mark.asyncio
async def test_save_scores_batch_is_atomic(session, factory, scoring):
    student, evaluator, questionnaire, questions = scoring
    _, other_questions = await factory.questionnaire(QuestionnaireType.POSTTEST, questions=1)
    other = other_questions[0]
    ledger = EvaluatorScoreLedger(session)

    with pytest.raises(ValidationError) as exc:
        await ledger.save_scores(
            student.id,
            questionnaire.id,
            evaluator.id,
            [(questions[0].id, Decimal("4")), (other.id, Decimal("2"))],
        )

    assert exc.value.reason == "unknown_question"
    assert await ledger.list_scores(student.id, questionnaire.id, evaluator.id) == []


@pytest.mark.asyncio
async def test_save_scores_with_finalize(session, scoring):
    student, evaluator, questionnaire, questions = scoring
    ledger = EvaluatorScoreLedger(session)

    saved = await ledger.save_scores(
        student.id,
        questionnaire.id,
        evaluator.id,
        [(question.id, Decimal("3")) for question in questions],
        finalize=True,
    )

    assert saved == 3
    scores = await ledger.list_scores(student.id, questionnaire.id, evaluator.id)
    assert [s.question_id for s in scores] == [q.id for q in questions]
    assert all(s.is_finalized for s in scores)


@pytest.mark.asyncio
async def test_save_scores_unknown_questionnaire(session, scoring):
    student, evaluator, _, questions = scoring

    with pytest.raises(NotFoundError) as exc:
        await EvaluatorScoreLedger(session).save_scores(
            student.id, "missing", evaluator.id, [(questions[0].id, Decimal("1"))]
        )

    assert exc.value.reason == "questionnaire_not_found"



def _partition(results):
    errors = [result for result in results if isinstance(result, Exception)]
    return [result for result in results if not isinstance(result, Exception)], errors


@pytest.mark.asyncio
async def test_concurrent_finalize_of_same_triple_succeeds_once(engine, scoring):
    student, evaluator, questionnaire, questions = scoring
    sessions = session_factory(engine)
    async with sessions() as seed:
        ledger = EvaluatorScoreLedger(seed)
        await ledger.save_score(student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal("4"))
        await ledger.save_score(student.id, questions[1].id, questionnaire.id, evaluator.id, Decimal("3"))

    async def finalize():
        async with sessions() as own:
            return await EvaluatorScoreLedger(own).finalize(
                student.id, questionnaire.id, evaluator.id
            )

    counts, errors = _partition(await asyncio.gather(finalize(), finalize(), return_exceptions=True))

    assert counts == [2]
    assert len(errors) == 1
    assert isinstance(errors[0], InvalidStateError)
    assert errors[0].reason == "already_finalized"
    async with sessions() as reader:
        audit = await AuditLogRepository(reader).list_entries()
        scores = await EvaluatorScoreLedger(reader).list_scores(
            student.id, questionnaire.id, evaluator.id
        )
    assert [entry.action for entry in audit].count("scores_finalized") == 1
    assert all(score.is_finalized for score in scores)


@pytest.mark.asyncio
async def test_concurrent_first_save_leaves_one_row(engine, scoring):
    student, evaluator, questionnaire, questions = scoring
    sessions = session_factory(engine)

    async def save(value):
        async with sessions() as own:
            return await EvaluatorScoreLedger(own).save_score(
                student.id, questions[0].id, questionnaire.id, evaluator.id, Decimal(value)
            )

    saved, errors = _partition(
        await asyncio.gather(save("2"), save("5"), return_exceptions=True)
    )

    assert errors == []
    assert len({record.id for record in saved}) == 1
    async with sessions() as reader:
        scores = await EvaluatorScoreLedger(reader).list_scores(
            student.id, questionnaire.id, evaluator.id
        )
    assert len(scores) == 1
    assert scores[0].score in {Decimal("2.00"), Decimal("5.00")}
    assert scores[0].is_finalized is False


@pytest.mark.asyncio
async def test_two_evaluators_finalizing_together_combine_both(engine, factory, scoring):
    student, first, questionnaire, questions = scoring
    second = await factory.user(Role.EVALUATOR)
    sessions = session_factory(engine)
    async with sessions() as seed:
        ledger = EvaluatorScoreLedger(seed)
        await ledger.save_score(student.id, questions[0].id, questionnaire.id, first.id, Decimal("4.50"))
        await ledger.save_score(student.id, questions[0].id, questionnaire.id, second.id, Decimal("3.50"))

    async def finalize(evaluator):
        async with sessions() as own:
            return await EvaluatorScoreLedger(own).finalize(
                student.id, questionnaire.id, evaluator.id
            )

    results = await asyncio.gather(finalize(first), finalize(second), return_exceptions=True)

    assert results == [1, 1]
    async with sessions() as reader:
        combined = await ScoreAggregationEngine(reader).list_combined(student.id, questionnaire.id)
    assert [(c.question_id, c.average_score, c.evaluator_count) for c in combined] == [
        (questions[0].id, Decimal("4.00"), 2),
    ]
