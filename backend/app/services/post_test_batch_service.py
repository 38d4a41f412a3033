from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import unit_of_work
from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.post_test_batch_repository import (
    PostTestBatchRecord,
    PostTestBatchRepository,
)
from app.repositories.tables import as_utc, utc_now
from app.services.audit_log_service import record_audit_entry
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _window(open_date: datetime, close_date: datetime) -> tuple[datetime, datetime]:
    open_date, close_date = as_utc(open_date), as_utc(close_date)
    if close_date <= open_date:
        raise ValidationError("invalid_batch_window", "Close date must be after open date")
    return open_date, close_date


class PostTestBatchService:
    """Time windows during which the post-test can be taken."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        repo: PostTestBatchRepository | None = None,
        audit_repo: AuditLogRepository | None = None,
    ) -> None:
        self.session = session
        self.repo = repo or PostTestBatchRepository(session)
        self.audit_repo = audit_repo or AuditLogRepository(session)

    async def current_open_batch(self, now: datetime | None = None) -> PostTestBatchRecord | None:
        return await self.repo.current_open(as_utc(now) if now else utc_now())

    async def is_post_test_available(self, now: datetime | None = None) -> bool:
        return await self.current_open_batch(now) is not None

    async def list_batches(self) -> list[PostTestBatchRecord]:
        return await self.repo.list_batches()

    async def create_batch(
        self,
        name: str,
        description: str | None,
        open_date: datetime,
        close_date: datetime,
        *,
        actor_id: str | None = None,
    ) -> PostTestBatchRecord:
        open_date, close_date = _window(open_date, close_date)
        async with unit_of_work(self.session):
            record = await self.repo.create_batch(
                {
                    "name": name,
                    "description": description,
                    "open_date": open_date,
                    "close_date": close_date,
                    "is_active": True,
                }
            )
            await record_audit_entry(
                self.audit_repo,
                actor_id=actor_id,
                action="post_test_batch_created",
                entity_type="post_test_batch",
                entity_id=record.id,
                details=f"{name}: {record.open_date} - {record.close_date}",
            )
        logger.info("Created post-test batch %s (%s)", record.id, name)
        return record

    async def update_batch(
        self,
        batch_id: str,
        name: str,
        description: str | None,
        open_date: datetime,
        close_date: datetime,
        is_active: bool,
        *,
        actor_id: str | None = None,
    ) -> PostTestBatchRecord:
        open_date, close_date = _window(open_date, close_date)
        values = {
            "name": name,
            "description": description,
            "open_date": open_date,
            "close_date": close_date,
            "is_active": is_active,
        }
        return await self._update(batch_id, values, "post_test_batch_updated", actor_id)

    async def close_batch(self, batch_id: str, *, actor_id: str | None = None) -> PostTestBatchRecord:
        return await self._update(batch_id, {"is_active": False}, "post_test_batch_closed", actor_id)

    async def _update(
        self, batch_id: str, values: dict, action: str, actor_id: str | None
    ) -> PostTestBatchRecord:
        async with unit_of_work(self.session):
            if not await self.repo.update_batch(batch_id, values):
                raise NotFoundError("batch_not_found", "Batch not found")
            await record_audit_entry(
                self.audit_repo,
                actor_id=actor_id,
                action=action,
                entity_type="post_test_batch",
                entity_id=batch_id,
            )
            record = await self.repo.get(batch_id)
        logger.info("%s: %s", action, batch_id)
        return record

    async def delete_batch(self, batch_id: str, *, actor_id: str | None = None) -> None:
        async with unit_of_work(self.session):
            if not await self.repo.delete_batch(batch_id):
                raise NotFoundError("batch_not_found", "Batch not found")
            await record_audit_entry(
                self.audit_repo,
                actor_id=actor_id,
                action="post_test_batch_deleted",
                entity_type="post_test_batch",
                entity_id=batch_id,
            )
        logger.info("Deleted post-test batch %s", batch_id)
