from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class ScoreItem(BaseModel):
    questionId: str = Field(..., min_length=1)
    score: Decimal = Field(..., max_digits=5, decimal_places=2)


class SaveScoresRequest(BaseModel):
    questionnaireId: str = Field(..., min_length=1)
    scores: list[ScoreItem] = Field(default_factory=list)
    finalize: bool = False

    @model_validator(mode="after")
    def validate_unique_questions(self) -> "SaveScoresRequest":
        seen: set[str] = set()
        for item in self.scores:
            if item.questionId in seen:
                raise ValueError(f"duplicate questionId {item.questionId}")
            seen.add(item.questionId)
        return self
