from __future__ import annotations

import pytest
from fastapi import status

from app.models.enums import MaterialType, QuestionnaireType, Role

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


async def _submit_pretest(client, headers, questions):
    await client.post(
        "/api/student/questionnaires/pretest/answers",
        json={"answers": {questions[0].id: "4"}},
        headers=headers,
    )
    await client.post("/api/student/questionnaires/pretest/submit", headers=headers)


@pytest.mark.asyncio
async def test_materials_open_after_pretest(client, factory):
    student = await factory.user(Role.STUDENT)
    _, questions = await factory.questionnaire()
    slides = await factory.material(MaterialType.PDF, title="Slides", order_index=1)
    video = await factory.material(MaterialType.VIDEO, title="Walkthrough", order_index=2)
    headers = {"X-User-Id": student.id}

    locked = await client.get("/api/student/materials", headers=headers)
    assert locked.status_code == status.HTTP_409_CONFLICT
    assert locked.json()["reason"] == "pretest_not_submitted"

    await _submit_pretest(client, headers, questions)
    tracked = await client.post(
        f"/api/student/materials/{video.id}/track",
        json={"durationSeconds": 300, "completed": True},
        headers=headers,
    )
    assert tracked.status_code == status.HTTP_204_NO_CONTENT

    listing = await client.get("/api/student/materials", headers=headers)
    assert listing.status_code == status.HTTP_200_OK
    assert [(m["id"], m["accessCount"]) for m in listing.json()["materials"]] == [
        (slides.id, 0),
        (video.id, 1),
    ]
    videos = await client.get("/api/student/materials", params={"type": "video"}, headers=headers)
    assert [m["title"] for m in videos.json()["materials"]] == ["Walkthrough"]

    detail = await client.get(f"/api/student/materials/{video.id}", headers=headers)
    assert detail.json()["accessCount"] == 1
    assert detail.json()["totalTimeSpentSeconds"] == 300
    assert detail.json()["completed"] is True

    progress = await client.get("/api/student/status", headers=headers)
    assert progress.json()["materialsAccessed"] == 1


@pytest.mark.asyncio
async def test_unknown_material_and_bad_duration(client, factory):
    student = await factory.user(Role.STUDENT)
    _, questions = await factory.questionnaire()
    material = await factory.material()
    headers = {"X-User-Id": student.id}
    await _submit_pretest(client, headers, questions)

    missing = await client.get("/api/student/materials/ghost", headers=headers)
    negative = await client.post(
        f"/api/student/materials/{material.id}/track",
        json={"durationSeconds": -5},
        headers=headers,
    )

    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json() == {"error": "Material not found", "reason": "material_not_found"}
    assert negative.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.asyncio
async def test_step_timing_round_trip(client, factory):
    student = await factory.user(Role.STUDENT)
    pretest, _ = await factory.questionnaire(questions=3)
    headers = {"X-User-Id": student.id}

    for body in (
        {"step": 1, "isStart": True},
        {"step": 1, "isStart": True},
        {"step": 1, "isStart": False},
        {"step": 2, "isStart": True},
    ):
        response = await client.post("/api/student/step-timing", json=body, headers=headers)
        assert response.status_code == status.HTTP_204_NO_CONTENT

    unknown = await client.post(
        "/api/student/step-timing", json={"step": 7, "isStart": True}, headers=headers
    )
    assert unknown.status_code == status.HTTP_400_BAD_REQUEST
    assert unknown.json()["reason"] == "unknown_step"

    timings = await client.get(
        f"/api/admin/students/{student.id}/step-timings",
        params={"questionnaireId": pretest.id},
        headers=ADMIN_HEADERS,
    )
    assert timings.status_code == status.HTTP_200_OK
    body = timings.json()
    assert [(t["step"], t["endTime"] is not None) for t in body["timings"]] == [
        (1, True),
        (2, False),
    ]
    assert body["totalSeconds"] == body["timings"][0]["timeSpentSeconds"]


@pytest.mark.asyncio
async def test_posttest_step_timing_follows_posttest_gate(client, factory):
    student = await factory.user(Role.STUDENT)
    await factory.questionnaire(QuestionnaireType.PRETEST)
    await factory.questionnaire(QuestionnaireType.POSTTEST)

    response = await client.post(
        "/api/student/step-timing",
        json={"type": "posttest", "step": 1, "isStart": True},
        headers={"X-User-Id": student.id},
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["reason"] == "posttest_unavailable"


@pytest.mark.asyncio
async def test_admin_sees_material_usage(client, factory):
    student = await factory.user(Role.STUDENT)
    _, questions = await factory.questionnaire()
    headers = {"X-User-Id": student.id}
    await _submit_pretest(client, headers, questions)

    created = await client.post(
        "/api/admin/materials",
        json={
            "title": "Case study",
            "type": "text",
            "storageKey": "materials/case-study.md",
            "fileExtension": "md",
            "orderIndex": 3,
        },
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == status.HTTP_201_CREATED
    material_id = created.json()["id"]
    await client.post(
        f"/api/student/materials/{material_id}/track", json={"durationSeconds": 40}, headers=headers
    )

    listing = await client.get("/api/admin/materials", headers=ADMIN_HEADERS)
    accesses = await client.get(
        f"/api/admin/students/{student.id}/material-accesses", headers=ADMIN_HEADERS
    )

    assert [(m["title"], m["accessCount"]) for m in listing.json()["materials"]] == [
        ("Case study", 1)
    ]
    assert accesses.json()["materialsAccessed"] == 1
    assert [(a["materialId"], a["durationSeconds"]) for a in accesses.json()["accesses"]] == [
        (material_id, 40)
    ]
