import pytest
import pytest_asyncio

from app.models.enums import MaterialType, Role
from app.repositories.audit_log_repository import AuditLogRepository
from app.services.answer_service import AnswerService
from app.services.errors import InvalidStateError, NotFoundError
from app.services.material_service import MaterialService


async def _submit_pretest(session, student, pretest, questions):
    answers = AnswerService(session)
    await answers.save_answers(student.id, pretest.id, {questions[0].id: "3"})
    await answers.submit(student.id, pretest.id)


@pytest_asyncio.fixture
async def student(session, factory):
    return await factory.user(Role.STUDENT)


@pytest.mark.asyncio
async def test_materials_locked_until_pretest_submitted(session, factory, student):
    pretest, questions = await factory.questionnaire()
    material = await factory.material()
    service = MaterialService(session)

    with pytest.raises(InvalidStateError) as exc:
        await service.track_access(student.id, material.id)
    assert exc.value.reason == "pretest_not_submitted"

    await _submit_pretest(session, student, pretest, questions)
    await service.ensure_unlocked(student.id)
    await service.track_access(student.id, material.id)
    assert await service.access_counts_for_user(student.id) == {material.id: 1}


@pytest.mark.asyncio
async def test_tracking_accumulates_per_material(session, factory, student):
    pretest, questions = await factory.questionnaire()
    await _submit_pretest(session, student, pretest, questions)
    video = await factory.material(MaterialType.VIDEO)
    notes = await factory.material(MaterialType.TEXT)
    service = MaterialService(session)

    await service.track_access(student.id, video.id, duration_seconds=120)
    await service.track_access(student.id, video.id, duration_seconds=45, completed=True)
    await service.track_access(student.id, video.id)
    await service.track_access(student.id, notes.id)

    assert await service.access_counts_for_user(student.id) == {video.id: 3, notes.id: 1}
    assert await service.materials_accessed(student.id) == 2
    assert await service.total_time_spent(student.id, video.id) == 165
    assert await service.total_time_spent(student.id, notes.id) is None
    history = await service.access_history(student.id, video.id)
    assert len(history) == 3
    assert sum(access.completed for access in history) == 1
    assert len(await service.access_history(student.id)) == 4


@pytest.mark.asyncio
async def test_inactive_material_is_hidden(session, factory, student):
    pretest, questions = await factory.questionnaire()
    await _submit_pretest(session, student, pretest, questions)
    later = await factory.material(title="Later", order_index=2)
    first = await factory.material(title="First", order_index=1)
    retired = await factory.material(title="Retired", active=False)
    service = MaterialService(session)

    assert [m.id for m in await service.list_materials()] == [first.id, later.id]
    assert await service.list_materials(MaterialType.VIDEO) == []

    with pytest.raises(NotFoundError) as exc:
        await service.get_material(retired.id)
    assert exc.value.reason == "material_not_found"

    with pytest.raises(NotFoundError):
        await service.track_access(student.id, retired.id)
    assert await service.materials_accessed(student.id) == 0


@pytest.mark.asyncio
async def test_admin_listing_includes_inactive_with_counts(session, factory, student):
    pretest, questions = await factory.questionnaire()
    await _submit_pretest(session, student, pretest, questions)
    service = MaterialService(session)
    guide = await service.create_material(
        title="Guide",
        description="Read first",
        material_type=MaterialType.PDF,
        storage_key="materials/guide.pdf",
        file_extension="pdf",
        file_size_bytes=2048,
        actor_id="admin",
    )
    retired = await factory.material(title="Retired", active=False)
    await service.track_access(student.id, guide.id)

    listing = {material.id: count for material, count in await service.list_with_access_counts()}

    assert listing == {guide.id: 1, retired.id: 0}
    entries = await AuditLogRepository(session).list_entries(entity_type="material")
    assert [(entry.action, entry.entity_id) for entry in entries] == [
        ("material_created", guide.id)
    ]
