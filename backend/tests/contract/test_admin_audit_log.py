from __future__ import annotations

import pytest
from fastapi import status

from app.models.enums import Role
from app.repositories.audit_log_repository import AuditLogRecord
from app.services.assignment_service import AssignmentService

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


@pytest.mark.asyncio
async def test_requires_admin_token(client):
    missing = await client.get("/api/admin/audit-log")
    wrong = await client.get("/api/admin/audit-log", headers={"X-Admin-Token": "nope"})

    assert missing.status_code == status.HTTP_401_UNAUTHORIZED
    assert wrong.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_passes_filters_through(client, monkeypatch):
    calls: list[dict[str, str | None]] = []

    async def fake_list_audit_entries(_repo, **kwargs):
        calls.append(kwargs)
        return [
            AuditLogRecord(
                id="entry-1",
                actor_id="admin",
                action="assignment_created",
                entity_type="evaluator_assignment",
                entity_id="assignment-1",
                timestamp="2025-01-01T00:00:00Z",
                details=None,
            )
        ]

    monkeypatch.setattr(
        "app.api.routes.admin.audit_log.list_audit_entries",
        fake_list_audit_entries,
    )

    response = await client.get(
        "/api/admin/audit-log?entityType=evaluator_assignment&actorId=admin"
        "&startDate=2025-01-01T00:00:00Z&endDate=2025-01-02T00:00:00Z",
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["entries"][0]["actorId"] == "admin"
    assert calls[-1] == {
        "entity_type": "evaluator_assignment",
        "actor_id": "admin",
        "start_date": "2025-01-01T00:00:00Z",
        "end_date": "2025-01-02T00:00:00Z",
    }


@pytest.mark.asyncio
async def test_lists_recorded_entries(client, session, factory):
    evaluator = await factory.user(Role.EVALUATOR)
    student = await factory.user(Role.STUDENT)
    record = await AssignmentService(session).assign(evaluator.id, student.id, actor_id="admin")

    response = await client.get(
        "/api/admin/audit-log", params={"actorId": "admin"}, headers=ADMIN_HEADERS
    )
    other = await client.get(
        "/api/admin/audit-log", params={"actorId": "someone-else"}, headers=ADMIN_HEADERS
    )

    entries = response.json()["entries"]
    assert [(e["action"], e["entityType"], e["entityId"]) for e in entries] == [
        ("assignment_created", "evaluator_assignment", record.id)
    ]
    assert other.json() == {"entries": []}


@pytest.mark.asyncio
async def test_rejects_bad_dates(client):
    response = await client.get(
        "/api/admin/audit-log", params={"startDate": "yesterday"}, headers=ADMIN_HEADERS
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["reason"] == "invalid_date"
