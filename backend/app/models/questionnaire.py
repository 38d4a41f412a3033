from __future__ import annotations

from pydantic import BaseModel, Field

from app.models.enums import QuestionnaireType


class SaveAnswersRequest(BaseModel):
    answers: dict[str, str | None] = Field(..., min_length=1)


class StepTimingRequest(BaseModel):
    type: QuestionnaireType = QuestionnaireType.PRETEST
    step: int = Field(..., ge=1)
    isStart: bool


class TrackMaterialAccessRequest(BaseModel):
    durationSeconds: int | None = Field(None, ge=0)
    completed: bool = False
