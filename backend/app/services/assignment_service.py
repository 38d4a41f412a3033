from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import unit_of_work
from app.models.enums import Role
from app.repositories.assignment_repository import (
    AssignmentInfo,
    AssignmentRecord,
    AssignmentRepository,
)
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.user_repository import UserRecord, UserRepository
from app.services.audit_log_service import record_audit_entry
from app.services.errors import NotFoundError, ServiceError, UnauthorizedError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class BulkAssignmentResult:
    success_count: int = 0
    errors: list[str] = field(default_factory=list)


class AssignmentService:
    """Which evaluator may see and score which student."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        repo: AssignmentRepository | None = None,
        user_repo: UserRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
    ) -> None:
        self.session = session
        self.repo = repo or AssignmentRepository(session)
        self.user_repo = user_repo or UserRepository(session)
        self.audit_repo = audit_repo or AuditLogRepository(session)

    async def _require_user(self, user_id: str, role: Role) -> UserRecord:
        user = await self.user_repo.get_user(user_id)
        if user is None or not user.has_role(role):
            raise ValidationError(f"invalid_{role.value}", f"Invalid {role.value}")
        return user

    async def assign(
        self, evaluator_id: str, student_id: str, *, actor_id: str | None = None
    ) -> AssignmentRecord:
        async with unit_of_work(self.session):
            await self._require_user(evaluator_id, Role.EVALUATOR)
            await self._require_user(student_id, Role.STUDENT)
            previous = await self.repo.get_by_pair(evaluator_id, student_id)
            record, created = await self.repo.upsert_active(evaluator_id, student_id)
            if created:
                action = "assignment_created"
            elif previous is not None and not previous.is_active:
                action = "assignment_reactivated"
            else:
                action = None
            if action:
                await record_audit_entry(
                    self.audit_repo,
                    actor_id=actor_id,
                    action=action,
                    entity_type="evaluator_assignment",
                    entity_id=record.id,
                    details=f"Evaluator {evaluator_id} -> student {student_id}",
                )
        if action:
            logger.info("%s: evaluator %s to student %s", action, evaluator_id, student_id)
        return record

    async def deactivate(
        self, evaluator_id: str, student_id: str, *, actor_id: str | None = None
    ) -> None:
        async with unit_of_work(self.session):
            await self._deactivate(evaluator_id, student_id, actor_id=actor_id)

    async def deactivate_by_id(self, assignment_id: str, *, actor_id: str | None = None) -> None:
        async with unit_of_work(self.session):
            record = await self.repo.get(assignment_id)
            if record is None:
                raise NotFoundError("assignment_not_found", "Assignment not found")
            await self._deactivate(record.evaluator_id, record.student_id, actor_id=actor_id)

    async def _deactivate(self, evaluator_id: str, student_id: str, *, actor_id: str | None) -> None:
        if not await self.repo.deactivate(evaluator_id, student_id):
            raise NotFoundError("assignment_not_found", "Assignment not found")
        await record_audit_entry(
            self.audit_repo,
            actor_id=actor_id,
            action="assignment_deactivated",
            entity_type="evaluator_assignment",
            entity_id=f"{evaluator_id}:{student_id}",
        )
        logger.info("Deactivated assignment: evaluator %s to student %s", evaluator_id, student_id)

    async def is_assigned(self, evaluator_id: str, student_id: str) -> bool:
        return await self.repo.is_active(evaluator_id, student_id)

    async def require_assigned(self, evaluator_id: str, student_id: str) -> None:
        if not await self.is_assigned(evaluator_id, student_id):
            raise UnauthorizedError("not_assigned", "You are not assigned to this student")

    async def bulk_assign(
        self, evaluator_id: str, student_ids: list[str], *, actor_id: str | None = None
    ) -> BulkAssignmentResult:
        result = BulkAssignmentResult()
        for student_id in student_ids:
            try:
                await self.assign(evaluator_id, student_id, actor_id=actor_id)
            except ServiceError as exc:
                result.errors.append(f"Student {student_id}: {exc.message}")
                logger.warning(
                    "Failed to assign student %s to evaluator %s: %s",
                    student_id,
                    evaluator_id,
                    exc.message,
                )
            else:
                result.success_count += 1
        logger.info(
            "Bulk assignment: %s succeeded, %s failed", result.success_count, len(result.errors)
        )
        return result

    async def list_assignments(self) -> list[AssignmentInfo]:
        return await self.repo.list_active()

    async def list_assigned_students(self, evaluator_id: str) -> list[UserRecord]:
        return await self.repo.list_assigned_students(evaluator_id)

    async def assignment_counts(self) -> dict[str, int]:
        return await self.repo.active_counts()

    async def unassigned_students(self) -> list[UserRecord]:
        return await self.repo.unassigned_students()
