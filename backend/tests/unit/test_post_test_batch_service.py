from datetime import datetime, timedelta, timezone

import pytest

from app.repositories.audit_log_repository import AuditLogRepository
from app.services.errors import NotFoundError, ValidationError
from app.services.post_test_batch_service import PostTestBatchService

OPEN = datetime(2026, 5, 1, tzinfo=timezone.utc)
CLOSE = datetime(2026, 5, 15, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_batch_window_decides_availability(session):
    service = PostTestBatchService(session)
    batch = await service.create_batch("May cohort", None, OPEN, CLOSE, actor_id="admin")

    assert await service.is_post_test_available(OPEN - timedelta(minutes=1)) is False
    assert (await service.current_open_batch(OPEN + timedelta(days=3))).id == batch.id
    assert await service.is_post_test_available(CLOSE) is True
    assert await service.is_post_test_available(CLOSE + timedelta(seconds=1)) is False


@pytest.mark.asyncio
async def test_newest_open_batch_wins(session):
    service = PostTestBatchService(session)
    await service.create_batch("First", None, OPEN, CLOSE)
    second = await service.create_batch("Second", None, OPEN + timedelta(days=1), CLOSE)

    current = await service.current_open_batch(OPEN + timedelta(days=2))

    assert current.id == second.id


@pytest.mark.asyncio
async def test_naive_dates_are_treated_as_utc(session):
    service = PostTestBatchService(session)
    batch = await service.create_batch(
        "Naive", None, OPEN.replace(tzinfo=None), CLOSE.replace(tzinfo=None)
    )

    assert batch.open_date == OPEN.isoformat()
    assert await service.is_post_test_available(OPEN + timedelta(hours=1)) is True


@pytest.mark.asyncio
async def test_close_date_must_follow_open_date(session):
    service = PostTestBatchService(session)

    with pytest.raises(ValidationError) as exc:
        await service.create_batch("Backwards", None, CLOSE, OPEN)

    assert exc.value.reason == "invalid_batch_window"
    assert await service.list_batches() == []


@pytest.mark.asyncio
async def test_close_update_and_delete_are_audited(session):
    service = PostTestBatchService(session)
    batch = await service.create_batch("June", "retake", OPEN, CLOSE, actor_id="admin")

    closed = await service.close_batch(batch.id, actor_id="admin")
    assert closed.is_active is False
    assert await service.is_post_test_available(OPEN + timedelta(days=1)) is False

    reopened = await service.update_batch(
        batch.id, "June", None, OPEN, CLOSE + timedelta(days=7), True, actor_id="admin"
    )
    assert reopened.is_active is True
    assert reopened.close_date == (CLOSE + timedelta(days=7)).isoformat()

    await service.delete_batch(batch.id, actor_id="admin")
    assert await service.list_batches() == []

    entries = await AuditLogRepository(session).list_entries(entity_type="post_test_batch")
    assert sorted(entry.action for entry in entries) == [
        "post_test_batch_closed",
        "post_test_batch_created",
        "post_test_batch_deleted",
        "post_test_batch_updated",
    ]


@pytest.mark.asyncio
async def test_unknown_batch(session):
    service = PostTestBatchService(session)

    with pytest.raises(NotFoundError) as exc:
        await service.close_batch("ghost")
    assert exc.value.reason == "batch_not_found"

    with pytest.raises(NotFoundError) as exc:
        await service.delete_batch("ghost")
    assert exc.value.reason == "batch_not_found"
