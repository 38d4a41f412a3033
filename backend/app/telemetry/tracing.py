from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger("app.telemetry")


def _scoring_payload(
    kind: str,
    name: str,
    *,
    student_id: str | None,
    questionnaire_id: str | None,
    evaluator_id: str | None,
    actor_id: str | None,
    attributes: dict[str, Any] | None,
) -> dict[str, Any]:
    """Scoring events are keyed by the (evaluator, student, questionnaire) triple.

    `actorId` is who triggered the change: the evaluator for ledger events,
    the admin for aggregation, the student for answer submission.
    """
    return {
        "type": kind,
        "name": name,
        "studentId": student_id,
        "questionnaireId": questionnaire_id,
        "evaluatorId": evaluator_id,
        "actorId": actor_id,
        "attributes": dict(attributes or {}),
    }


def _log(payload: dict[str, Any]) -> dict[str, Any]:
    logger.info(json.dumps(payload, sort_keys=True, default=str))
    return payload


def build_event(
    name: str,
    *,
    student_id: str | None = None,
    questionnaire_id: str | None = None,
    evaluator_id: str | None = None,
    actor_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return _scoring_payload(
        "event",
        name,
        student_id=student_id,
        questionnaire_id=questionnaire_id,
        evaluator_id=evaluator_id,
        actor_id=actor_id,
        attributes=attributes,
    )


def emit_event(name: str, **fields: Any) -> dict[str, Any]:
    return _log(build_event(name, **fields))


def build_metric(
    name: str,
    value: float,
    *,
    student_id: str | None = None,
    questionnaire_id: str | None = None,
    evaluator_id: str | None = None,
    actor_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload = _scoring_payload(
        "metric",
        name,
        student_id=student_id,
        questionnaire_id=questionnaire_id,
        evaluator_id=evaluator_id,
        actor_id=actor_id,
        attributes=attributes,
    )
    payload["value"] = value
    return payload


def emit_metric(name: str, value: float, **fields: Any) -> dict[str, Any]:
    return _log(build_metric(name, value, **fields))
