from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import insert_ignoring_conflicts
from app.repositories.tables import StepTiming, as_utc, to_iso


@dataclass(frozen=True)
class StepTimingRecord:
    id: str
    user_id: str
    questionnaire_id: str
    step: int
    start_time: str | None
    end_time: str | None
    time_spent_seconds: int | None


def _from_row(row: StepTiming) -> StepTimingRecord:
    return StepTimingRecord(
        id=row.id,
        user_id=row.user_id,
        questionnaire_id=row.questionnaire_id,
        step=row.step,
        start_time=to_iso(row.start_time),
        end_time=to_iso(row.end_time),
        time_spent_seconds=row.time_spent_seconds,
    )


def _pair(user_id: str, questionnaire_id: str):
    return (StepTiming.user_id == user_id, StepTiming.questionnaire_id == questionnaire_id)


class StepTimingRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def start(
        self, user_id: str, questionnaire_id: str, step: int, started_at: datetime
    ) -> bool:
        """Record the first start of a step; False when the step was already started."""
        stmt = insert_ignoring_conflicts(self._session, StepTiming).values(
            user_id=user_id,
            questionnaire_id=questionnaire_id,
            step=step,
            start_time=started_at,
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def close(
        self, user_id: str, questionnaire_id: str, step: int, ended_at: datetime
    ) -> StepTimingRecord | None:
        """Close the open timing for a step; None when there is nothing open."""
        stmt = select(StepTiming).where(
            *_pair(user_id, questionnaire_id),
            StepTiming.step == step,
            StepTiming.end_time.is_(None),
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        spent = int((as_utc(ended_at) - as_utc(row.start_time)).total_seconds())
        stmt = (
            update(StepTiming)
            .where(StepTiming.id == row.id, StepTiming.end_time.is_(None))
            .values(end_time=ended_at, time_spent_seconds=max(spent, 0))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return None
        await self._session.refresh(row)
        return _from_row(row)

    async def list_timings(self, user_id: str, questionnaire_id: str) -> list[StepTimingRecord]:
        stmt = (
            select(StepTiming)
            .where(*_pair(user_id, questionnaire_id))
            .order_by(StepTiming.step)
            .execution_options(populate_existing=True)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_from_row(row) for row in rows]

    async def total_seconds(self, user_id: str, questionnaire_id: str) -> int | None:
        stmt = select(func.sum(StepTiming.time_spent_seconds)).where(
            *_pair(user_id, questionnaire_id), StepTiming.time_spent_seconds.is_not(None)
        )
        total = (await self._session.execute(stmt)).scalar_one_or_none()
        return int(total) if total is not None else None
