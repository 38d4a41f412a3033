from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.tables import PostTestBatch, to_iso, utc_now


@dataclass(frozen=True)
class PostTestBatchRecord:
    id: str
    name: str
    description: str | None
    open_date: str | None
    close_date: str | None
    is_active: bool
    created_at: str | None


def _from_row(row: PostTestBatch) -> PostTestBatchRecord:
    return PostTestBatchRecord(
        id=row.id,
        name=row.name,
        description=row.description,
        open_date=to_iso(row.open_date),
        close_date=to_iso(row.close_date),
        is_active=row.is_active,
        created_at=to_iso(row.created_at),
    )


class PostTestBatchRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_batch(self, payload: dict[str, Any]) -> PostTestBatchRecord:
        row = PostTestBatch(**payload)
        self._session.add(row)
        await self._session.flush()
        return _from_row(row)

    async def get(self, batch_id: str) -> PostTestBatchRecord | None:
        stmt = (
            select(PostTestBatch)
            .where(PostTestBatch.id == batch_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _from_row(row) if row else None

    async def current_open(self, now: datetime) -> PostTestBatchRecord | None:
        stmt = (
            select(PostTestBatch)
            .where(
                PostTestBatch.is_active.is_(True),
                PostTestBatch.open_date <= now,
                PostTestBatch.close_date >= now,
            )
            .order_by(PostTestBatch.created_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _from_row(row) if row else None

    async def list_batches(self) -> list[PostTestBatchRecord]:
        stmt = select(PostTestBatch).order_by(PostTestBatch.created_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_from_row(row) for row in rows]

    async def update_batch(self, batch_id: str, values: dict[str, Any]) -> bool:
        stmt = (
            update(PostTestBatch)
            .where(PostTestBatch.id == batch_id)
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def delete_batch(self, batch_id: str) -> bool:
        stmt = delete(PostTestBatch).where(PostTestBatch.id == batch_id)
        result = await self._session.execute(stmt)
        return result.rowcount == 1
