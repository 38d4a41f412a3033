from __future__ import annotations

from datetime import datetime, timezone

from app.repositories.audit_log_repository import AuditLogRecord, AuditLogRepository
from app.services.errors import ValidationError


def _parse_date(name: str, raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError("invalid_date", f"Invalid {name}: {raw}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


async def record_audit_entry(
    repo: AuditLogRepository,
    *,
    actor_id: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None,
    details: str | None = None,
    timestamp: datetime | None = None,
) -> AuditLogRecord:
    payload = {
        "actor_id": actor_id,
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "details": details,
        "timestamp": timestamp or datetime.now(timezone.utc),
    }
    return await repo.create_entry(payload)


async def list_audit_entries(
    repo: AuditLogRepository,
    *,
    entity_type: str | None = None,
    actor_id: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[AuditLogRecord]:
    return await repo.list_entries(
        entity_type=entity_type,
        actor_id=actor_id,
        start=_parse_date("startDate", start_date),
        end=_parse_date("endDate", end_date),
    )
