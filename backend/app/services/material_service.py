from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import unit_of_work
from app.models.enums import MaterialType, QuestionnaireType
from app.repositories.answer_repository import AnswerRepository
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.material_repository import (
    MaterialAccessRecord,
    MaterialRecord,
    MaterialRepository,
)
from app.repositories.questionnaire_repository import QuestionnaireRepository
from app.repositories.tables import utc_now
from app.services.audit_log_service import record_audit_entry
from app.services.errors import InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)


class MaterialService:
    """Learning materials shown between the pre-test and the post-test, and who opened them."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        repo: MaterialRepository | None = None,
        answer_repo: AnswerRepository | None = None,
        questionnaire_repo: QuestionnaireRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
    ) -> None:
        self.session = session
        self.repo = repo or MaterialRepository(session)
        self.answer_repo = answer_repo or AnswerRepository(session)
        self.questionnaire_repo = questionnaire_repo or QuestionnaireRepository(session)
        self.audit_repo = audit_repo or AuditLogRepository(session)

    async def ensure_unlocked(self, user_id: str) -> None:
        pretest = await self.questionnaire_repo.get_active(QuestionnaireType.PRETEST)
        if pretest is None or not await self.answer_repo.has_submitted(user_id, pretest.id):
            raise InvalidStateError(
                "pretest_not_submitted", "Pre-test must be completed before viewing materials"
            )

    async def create_material(
        self,
        *,
        title: str,
        description: str | None,
        material_type: MaterialType,
        storage_key: str,
        file_extension: str | None = None,
        file_size_bytes: int | None = None,
        order_index: int = 0,
        actor_id: str | None = None,
    ) -> MaterialRecord:
        async with unit_of_work(self.session):
            record = await self.repo.create_material(
                {
                    "title": title,
                    "description": description,
                    "type": material_type,
                    "storage_key": storage_key,
                    "file_extension": file_extension,
                    "file_size_bytes": file_size_bytes,
                    "order_index": order_index,
                }
            )
            await record_audit_entry(
                self.audit_repo,
                actor_id=actor_id,
                action="material_created",
                entity_type="material",
                entity_id=record.id,
                details=title,
            )
        logger.info("Created material %s (%s)", record.id, material_type.value)
        return record

    async def list_materials(
        self, material_type: MaterialType | None = None, *, include_inactive: bool = False
    ) -> list[MaterialRecord]:
        return await self.repo.list_materials(
            material_type=material_type, include_inactive=include_inactive
        )

    async def list_with_access_counts(
        self, material_type: MaterialType | None = None
    ) -> list[tuple[MaterialRecord, int]]:
        materials = await self.repo.list_materials(
            material_type=material_type, include_inactive=True
        )
        counts = await self.repo.access_counts(material_ids=[material.id for material in materials])
        return [(material, counts.get(material.id, 0)) for material in materials]

    async def get_material(self, material_id: str) -> MaterialRecord:
        material = await self.repo.get(material_id)
        if material is None or not material.is_active:
            raise NotFoundError("material_not_found", "Material not found")
        return material

    async def track_access(
        self,
        user_id: str,
        material_id: str,
        *,
        duration_seconds: int | None = None,
        completed: bool = False,
    ) -> MaterialAccessRecord:
        async with unit_of_work(self.session):
            await self.ensure_unlocked(user_id)
            await self.get_material(material_id)
            record = await self.repo.add_access(
                {
                    "user_id": user_id,
                    "material_id": material_id,
                    "accessed_at": utc_now(),
                    "duration_seconds": duration_seconds,
                    "completed": completed,
                }
            )
        logger.info("User %s accessed material %s", user_id, material_id)
        return record

    async def access_counts_for_user(self, user_id: str) -> dict[str, int]:
        return await self.repo.access_counts(user_id=user_id)

    async def materials_accessed(self, user_id: str) -> int:
        return await self.repo.distinct_materials_accessed(user_id)

    async def total_time_spent(self, user_id: str, material_id: str) -> int | None:
        return await self.repo.total_seconds(user_id, material_id)

    async def access_history(
        self, user_id: str, material_id: str | None = None
    ) -> list[MaterialAccessRecord]:
        return await self.repo.list_accesses(user_id, material_id)
