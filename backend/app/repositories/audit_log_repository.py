from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.tables import AuditLog, to_iso


@dataclass(frozen=True)
class AuditLogRecord:
    id: str
    actor_id: str | None
    action: str
    entity_type: str
    entity_id: str | None
    timestamp: str | None
    details: str | None


def _from_row(row: AuditLog) -> AuditLogRecord:
    return AuditLogRecord(
        id=row.id,
        actor_id=row.actor_id,
        action=row.action,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        timestamp=to_iso(row.timestamp),
        details=row.details,
    )


class AuditLogRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_entry(self, payload: dict[str, Any]) -> AuditLogRecord:
        row = AuditLog(**payload)
        self._session.add(row)
        await self._session.flush()
        return _from_row(row)

    async def list_entries(
        self,
        *,
        entity_type: str | None = None,
        actor_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[AuditLogRecord]:
        stmt = select(AuditLog)
        if entity_type:
            stmt = stmt.where(AuditLog.entity_type == entity_type)
        if actor_id:
            stmt = stmt.where(AuditLog.actor_id == actor_id)
        if start:
            stmt = stmt.where(AuditLog.timestamp >= start)
        if end:
            stmt = stmt.where(AuditLog.timestamp <= end)
        stmt = stmt.order_by(AuditLog.timestamp.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_from_row(row) for row in rows]
