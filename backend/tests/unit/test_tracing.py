import json

from app.telemetry.tracing import build_event, emit_event, emit_metric


def _last_payload(caplog):
    assert caplog.records
    return json.loads(caplog.records[-1].message)


def test_emit_event_carries_scoring_triple_and_actor(caplog):
    caplog.set_level("INFO")

    emit_event(
        "scores.finalized",
        student_id="student-1",
        questionnaire_id="questionnaire-2",
        evaluator_id="evaluator-1",
        actor_id="evaluator-1",
        attributes={"scoreCount": 3},
    )

    payload = _last_payload(caplog)
    assert payload["type"] == "event"
    assert payload["studentId"] == "student-1"
    assert payload["questionnaireId"] == "questionnaire-2"
    assert payload["evaluatorId"] == "evaluator-1"
    assert payload["actorId"] == "evaluator-1"
    assert payload["attributes"] == {"scoreCount": 3}


def test_admin_event_has_actor_without_evaluator():
    payload = build_event(
        "combined.finalized",
        student_id="student-1",
        questionnaire_id="questionnaire-2",
        actor_id="admin",
    )

    assert payload["evaluatorId"] is None
    assert payload["actorId"] == "admin"
    assert payload["attributes"] == {}


def test_emit_metric_includes_value_and_ids(caplog):
    caplog.set_level("INFO")

    emit_metric(
        "scores.finalized_count",
        4,
        student_id="student-1",
        questionnaire_id="questionnaire-9",
        evaluator_id="evaluator-3",
    )

    payload = _last_payload(caplog)
    assert payload["type"] == "metric"
    assert payload["value"] == 4
    assert payload["studentId"] == "student-1"
    assert payload["questionnaireId"] == "questionnaire-9"
    assert payload["evaluatorId"] == "evaluator-3"
    assert payload["actorId"] is None
