from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.clients.database import Base
from app.models.enums import (
    MaterialType,
    QuestionnaireType,
    QuestionType,
    Role,
    UserStatus,
    enum_values,
)

SCORE_TYPE = sa.Numeric(5, 2, asdecimal=True)


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()


def _enum(enum_cls: Any, name: str) -> sa.Enum:
    return sa.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=enum_values,
        validate_strings=True,
    )


class User(Base):
    __tablename__ = "users"
    __table_args__ = (sa.Index("ix_users_role_status", "role", "status"),)

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    role: Mapped[Role] = mapped_column(_enum(Role, "user_role"), nullable=False)
    status: Mapped[UserStatus] = mapped_column(
        _enum(UserStatus, "user_status"), nullable=False, default=UserStatus.ACTIVE
    )
    hospital: Mapped[str | None] = mapped_column(sa.String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class Questionnaire(Base):
    __tablename__ = "questionnaires"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    type: Mapped[QuestionnaireType] = mapped_column(
        _enum(QuestionnaireType, "questionnaire_type"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        sa.Index("ix_questions_questionnaire_order", "questionnaire_id", "order_index"),
        sa.Index("ix_questions_questionnaire_step", "questionnaire_id", "step"),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    questionnaire_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(sa.Text, nullable=False)
    type: Mapped[QuestionType] = mapped_column(_enum(QuestionType, "question_type"), nullable=False)
    options: Mapped[list[str] | None] = mapped_column(sa.JSON, nullable=True)
    order_index: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    step: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    is_required: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    min_value: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    max_value: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    min_label: Mapped[str | None] = mapped_column(sa.String(50), nullable=True)
    max_label: Mapped[str | None] = mapped_column(sa.String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "questionnaire_id", "question_id", name="uq_answers_key"),
        sa.Index("ix_answers_user_questionnaire", "user_id", "questionnaire_id"),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    questionnaire_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_submitted: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, index=True)
    submitted_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class EvaluatorAssignment(Base):
    __tablename__ = "evaluator_assignments"
    __table_args__ = (
        sa.UniqueConstraint("evaluator_id", "student_id", name="uq_evaluator_assignments_pair"),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    evaluator_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, index=True)
    assigned_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class EvaluatorScore(Base):
    __tablename__ = "evaluator_scores"
    __table_args__ = (
        sa.UniqueConstraint(
            "student_id",
            "questionnaire_id",
            "question_id",
            "evaluator_id",
            name="uq_evaluator_scores_key",
        ),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    questionnaire_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    evaluator_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[Decimal] = mapped_column(SCORE_TYPE, nullable=False)
    is_finalized: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class CombinedScore(Base):
    __tablename__ = "combined_scores"
    __table_args__ = (
        sa.UniqueConstraint(
            "student_id", "questionnaire_id", "question_id", name="uq_combined_scores_key"
        ),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    questionnaire_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    average_score: Mapped[Decimal] = mapped_column(SCORE_TYPE, nullable=False)
    evaluator_count: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    is_finalized: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    actor_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True, index=True)
    action: Mapped[str] = mapped_column(sa.String(50), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    details: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, index=True
    )


class StepTiming(Base):
    __tablename__ = "step_timings"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "questionnaire_id", "step", name="uq_step_timings_key"),
    )

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    questionnaire_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("questionnaires.id", ondelete="CASCADE"), nullable=False
    )
    step: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    start_time: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    time_spent_seconds: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    type: Mapped[MaterialType] = mapped_column(
        _enum(MaterialType, "material_type"), nullable=False
    )
    storage_key: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    file_extension: Mapped[str | None] = mapped_column(sa.String(10), nullable=True)
    file_size_bytes: Mapped[int | None] = mapped_column(sa.BigInteger, nullable=True)
    order_index: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class MaterialAccess(Base):
    __tablename__ = "material_accesses"
    __table_args__ = (sa.Index("ix_material_accesses_user_material", "user_id", "material_id"),)

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    material_id: Mapped[str] = mapped_column(
        sa.String(36), sa.ForeignKey("materials.id", ondelete="CASCADE"), nullable=False
    )
    accessed_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    duration_seconds: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    completed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)


class PostTestBatch(Base):
    __tablename__ = "post_test_batches"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    open_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    close_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
