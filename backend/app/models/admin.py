from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.enums import MaterialType


class AssignmentCreate(BaseModel):
    evaluatorId: str = Field(..., min_length=1)
    studentId: str = Field(..., min_length=1)


class BulkAssignmentCreate(BaseModel):
    evaluatorId: str = Field(..., min_length=1)
    studentIds: list[str] = Field(..., min_length=1)


class RecalculateRequest(BaseModel):
    questionnaireId: str = Field(..., min_length=1)


class FinalizeCombinedRequest(BaseModel):
    questionnaireId: str = Field(..., min_length=1)


class MaterialCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    type: MaterialType
    storageKey: str = Field(..., min_length=1, max_length=500)
    fileExtension: str | None = Field(None, max_length=10)
    fileSizeBytes: int | None = Field(None, ge=0)
    orderIndex: int = 0


class PostTestBatchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    openDate: datetime
    closeDate: datetime


class PostTestBatchUpdate(PostTestBatchCreate):
    isActive: bool = True
