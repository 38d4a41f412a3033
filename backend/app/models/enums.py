from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    EVALUATOR = "evaluator"
    STUDENT = "student"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class QuestionnaireType(str, Enum):
    PRETEST = "pretest"
    POSTTEST = "posttest"


class QuestionType(str, Enum):
    LIKERT_SCALE = "likert_scale"
    TRUE_FALSE = "true_false"
    MULTIPLE_CHOICE = "multiple_choice"
    DROPDOWN = "dropdown"
    TEXT_FIELD = "text_field"


class MaterialType(str, Enum):
    PDF = "pdf"
    VIDEO = "video"
    TEXT = "text"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]
