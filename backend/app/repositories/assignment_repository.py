from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.clients.database import insert_ignoring_conflicts
from app.models.enums import Role, UserStatus
from app.repositories.tables import EvaluatorAssignment, User, to_iso, utc_now
from app.repositories.user_repository import UserRecord, user_from_row


@dataclass(frozen=True)
class AssignmentRecord:
    id: str
    evaluator_id: str
    student_id: str
    is_active: bool
    assigned_at: str | None
    updated_at: str | None


@dataclass(frozen=True)
class AssignmentInfo:
    id: str
    evaluator_id: str
    evaluator_name: str
    evaluator_email: str
    student_id: str
    student_name: str
    student_email: str
    assigned_at: str | None


def _from_row(row: EvaluatorAssignment) -> AssignmentRecord:
    return AssignmentRecord(
        id=row.id,
        evaluator_id=row.evaluator_id,
        student_id=row.student_id,
        is_active=row.is_active,
        assigned_at=to_iso(row.assigned_at),
        updated_at=to_iso(row.updated_at),
    )


def _pair(evaluator_id: str, student_id: str):
    return (
        EvaluatorAssignment.evaluator_id == evaluator_id,
        EvaluatorAssignment.student_id == student_id,
    )


class AssignmentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, assignment_id: str) -> AssignmentRecord | None:
        stmt = (
            select(EvaluatorAssignment)
            .where(EvaluatorAssignment.id == assignment_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _from_row(row) if row else None

    async def get_by_pair(self, evaluator_id: str, student_id: str) -> AssignmentRecord | None:
        stmt = (
            select(EvaluatorAssignment)
            .where(*_pair(evaluator_id, student_id))
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _from_row(row) if row else None

    async def upsert_active(self, evaluator_id: str, student_id: str) -> tuple[AssignmentRecord, bool]:
        """Create or reactivate the pair's single record; the flag is True when created."""
        stmt = insert_ignoring_conflicts(self._session, EvaluatorAssignment).values(
            evaluator_id=evaluator_id,
            student_id=student_id,
            is_active=True,
        )
        created = (await self._session.execute(stmt)).rowcount == 1
        if not created:
            await self._session.execute(
                update(EvaluatorAssignment)
                .where(*_pair(evaluator_id, student_id), EvaluatorAssignment.is_active.is_(False))
                .values(is_active=True, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
        record = await self.get_by_pair(evaluator_id, student_id)
        if record is None:
            raise RuntimeError(f"Assignment {evaluator_id}/{student_id} vanished after upsert")
        return record, created

    async def deactivate(self, evaluator_id: str, student_id: str) -> bool:
        stmt = (
            update(EvaluatorAssignment)
            .where(*_pair(evaluator_id, student_id), EvaluatorAssignment.is_active.is_(True))
            .values(is_active=False, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return (await self._session.execute(stmt)).rowcount == 1

    async def is_active(self, evaluator_id: str, student_id: str) -> bool:
        stmt = (
            select(EvaluatorAssignment.id)
            .where(*_pair(evaluator_id, student_id), EvaluatorAssignment.is_active.is_(True))
            .limit(1)
        )
        return (await self._session.execute(stmt)).first() is not None

    async def list_active(self) -> list[AssignmentInfo]:
        evaluator = aliased(User)
        student = aliased(User)
        stmt = (
            select(EvaluatorAssignment, evaluator, student)
            .join(evaluator, evaluator.id == EvaluatorAssignment.evaluator_id)
            .join(student, student.id == EvaluatorAssignment.student_id)
            .where(EvaluatorAssignment.is_active.is_(True))
            .order_by(evaluator.name, student.name)
        )
        rows = (await self._session.execute(stmt)).all()
        return [
            AssignmentInfo(
                id=assignment.id,
                evaluator_id=assignment.evaluator_id,
                evaluator_name=ev.name,
                evaluator_email=ev.email,
                student_id=assignment.student_id,
                student_name=st.name,
                student_email=st.email,
                assigned_at=to_iso(assignment.assigned_at),
            )
            for assignment, ev, st in rows
        ]

    async def list_assigned_students(self, evaluator_id: str) -> list[UserRecord]:
        stmt = (
            select(User)
            .join(EvaluatorAssignment, EvaluatorAssignment.student_id == User.id)
            .where(
                EvaluatorAssignment.evaluator_id == evaluator_id,
                EvaluatorAssignment.is_active.is_(True),
            )
            .order_by(User.name)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [user_from_row(row) for row in rows]

    async def active_counts(self) -> dict[str, int]:
        stmt = (
            select(EvaluatorAssignment.evaluator_id, func.count(EvaluatorAssignment.id))
            .where(EvaluatorAssignment.is_active.is_(True))
            .group_by(EvaluatorAssignment.evaluator_id)
        )
        rows = (await self._session.execute(stmt)).all()
        return {evaluator_id: int(count) for evaluator_id, count in rows}

    async def unassigned_students(self) -> list[UserRecord]:
        has_assignment = exists().where(
            and_(
                EvaluatorAssignment.student_id == User.id,
                EvaluatorAssignment.is_active.is_(True),
            )
        )
        stmt = (
            select(User)
            .where(
                User.role == Role.STUDENT,
                User.status == UserStatus.ACTIVE,
                ~has_assignment,
            )
            .order_by(User.name)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [user_from_row(row) for row in rows]
