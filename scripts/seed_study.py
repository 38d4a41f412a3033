from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]
BACKEND_ROOT = PROJECT_ROOT / "backend"
sys.path.append(str(BACKEND_ROOT))

from app.clients.database import (
    dispose_engines,
    get_engine,
    init_models,
    session_factory,
    unit_of_work,
)
from app.config import SettingsError, load_settings
from app.models.enums import QuestionnaireType, QuestionType, Role, UserStatus, enum_values
from app.repositories.questionnaire_repository import QuestionnaireRepository
from app.repositories.user_repository import UserRepository


def _read_json(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError as exc:
        raise ValueError(f"File not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError(f"Expected a list in {path}")
    if not all(isinstance(item, dict) for item in data):
        raise ValueError(f"Expected a list of objects in {path}")
    return data


def _require_fields(item: dict[str, Any], fields: list[str], context: str) -> None:
    missing = [field for field in fields if item.get(field) in (None, "")]
    if missing:
        raise ValueError(f"{context} missing required fields: {', '.join(missing)}")


def _require_choice(value: Any, allowed: list[str], context: str) -> None:
    if value not in allowed:
        raise ValueError(f"{context} must be one of {', '.join(allowed)}, got {value!r}")


def _validate_user(user: dict[str, Any]) -> None:
    _require_fields(user, ["email", "name", "role"], "User")
    _require_choice(user["role"], enum_values(Role), "User role")
    if "status" in user:
        _require_choice(user["status"], enum_values(UserStatus), "User status")


def _validate_questionnaire(questionnaire: dict[str, Any]) -> None:
    _require_fields(questionnaire, ["title", "type", "questions"], "Questionnaire")
    _require_choice(questionnaire["type"], enum_values(QuestionnaireType), "Questionnaire type")
    questions = questionnaire["questions"]
    if not isinstance(questions, list) or not questions:
        raise ValueError(f"Questionnaire {questionnaire['title']} needs a non-empty questions list")
    for question in questions:
        _require_fields(question, ["text", "type", "orderIndex", "step"], "Question")
        _require_choice(question["type"], enum_values(QuestionType), "Question type")
        if question.get("options") is not None and not isinstance(question["options"], list):
            raise ValueError("Question options must be a list")


async def _seed_users(repo: UserRepository, users: list[dict[str, Any]]) -> int:
    created = 0
    for user in users:
        if await repo.get_by_email(user["email"]):
            continue
        await repo.create_user(
            email=user["email"],
            name=user["name"],
            role=Role(user["role"]),
            status=UserStatus(user.get("status", UserStatus.ACTIVE.value)),
            hospital=user.get("hospital"),
            user_id=user.get("id"),
        )
        created += 1
    return created


async def _seed_questionnaires(
    repo: QuestionnaireRepository, questionnaires: list[dict[str, Any]]
) -> int:
    created = 0
    for questionnaire in questionnaires:
        questionnaire_type = QuestionnaireType(questionnaire["type"])
        if await repo.get_by_title(questionnaire["title"], questionnaire_type):
            continue
        record = await repo.create_questionnaire(
            {
                "title": questionnaire["title"],
                "description": questionnaire.get("description"),
                "type": questionnaire_type,
                "is_active": questionnaire.get("isActive", True),
            }
        )
        for question in questionnaire["questions"]:
            await repo.create_question(
                {
                    "questionnaire_id": record.id,
                    "text": question["text"],
                    "type": QuestionType(question["type"]),
                    "options": question.get("options"),
                    "order_index": question["orderIndex"],
                    "step": question["step"],
                    "is_required": question.get("isRequired", True),
                    "min_value": question.get("minValue"),
                    "max_value": question.get("maxValue"),
                    "min_label": question.get("minLabel"),
                    "max_label": question.get("maxLabel"),
                }
            )
        created += 1
    return created


async def _run(users_path: Path | None, questionnaires_path: Path | None) -> int:
    users = _read_json(users_path) if users_path else []
    questionnaires = _read_json(questionnaires_path) if questionnaires_path else []

    for user in users:
        _validate_user(user)
    for questionnaire in questionnaires:
        _validate_questionnaire(questionnaire)

    try:
        settings = load_settings()
    except SettingsError as exc:
        raise ValueError(str(exc)) from exc

    engine = get_engine(settings.database_url, echo=settings.database_echo)
    try:
        await init_models(engine)
        async with session_factory(engine)() as session:
            async with unit_of_work(session):
                user_count = await _seed_users(UserRepository(session), users)
                questionnaire_count = await _seed_questionnaires(
                    QuestionnaireRepository(session), questionnaires
                )
    finally:
        await dispose_engines()

    print(f"Seed complete: {user_count} users, {questionnaire_count} questionnaires")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed study users and questionnaires")
    parser.add_argument("--users", type=Path)
    parser.add_argument("--questionnaires", type=Path)
    args = parser.parse_args()
    if not args.users and not args.questionnaires:
        parser.error("provide --users and/or --questionnaires")

    try:
        return asyncio.run(_run(args.users, args.questionnaires))
    except Exception as exc:
        print(f"Seed failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
