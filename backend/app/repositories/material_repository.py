from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import MaterialType
from app.repositories.tables import Material, MaterialAccess, to_iso


@dataclass(frozen=True)
class MaterialRecord:
    id: str
    title: str
    description: str | None
    type: MaterialType
    storage_key: str
    file_extension: str | None
    file_size_bytes: int | None
    order_index: int
    is_active: bool
    created_at: str | None
    updated_at: str | None


@dataclass(frozen=True)
class MaterialAccessRecord:
    id: str
    user_id: str
    material_id: str
    accessed_at: str | None
    duration_seconds: int | None
    completed: bool


def _material_from_row(row: Material) -> MaterialRecord:
    return MaterialRecord(
        id=row.id,
        title=row.title,
        description=row.description,
        type=MaterialType(row.type),
        storage_key=row.storage_key,
        file_extension=row.file_extension,
        file_size_bytes=row.file_size_bytes,
        order_index=row.order_index,
        is_active=row.is_active,
        created_at=to_iso(row.created_at),
        updated_at=to_iso(row.updated_at),
    )


def _access_from_row(row: MaterialAccess) -> MaterialAccessRecord:
    return MaterialAccessRecord(
        id=row.id,
        user_id=row.user_id,
        material_id=row.material_id,
        accessed_at=to_iso(row.accessed_at),
        duration_seconds=row.duration_seconds,
        completed=row.completed,
    )


class MaterialRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_material(self, payload: dict[str, Any]) -> MaterialRecord:
        row = Material(**payload)
        self._session.add(row)
        await self._session.flush()
        return _material_from_row(row)

    async def get(self, material_id: str) -> MaterialRecord | None:
        row = await self._session.get(Material, material_id)
        return _material_from_row(row) if row else None

    async def list_materials(
        self, *, material_type: MaterialType | None = None, include_inactive: bool = False
    ) -> list[MaterialRecord]:
        stmt = select(Material)
        if material_type is not None:
            stmt = stmt.where(Material.type == material_type)
        if not include_inactive:
            stmt = stmt.where(Material.is_active.is_(True))
        stmt = stmt.order_by(Material.order_index, Material.title)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_material_from_row(row) for row in rows]

    async def add_access(self, payload: dict[str, Any]) -> MaterialAccessRecord:
        row = MaterialAccess(**payload)
        self._session.add(row)
        await self._session.flush()
        return _access_from_row(row)

    async def list_accesses(
        self, user_id: str, material_id: str | None = None
    ) -> list[MaterialAccessRecord]:
        stmt = select(MaterialAccess).where(MaterialAccess.user_id == user_id)
        if material_id:
            stmt = stmt.where(MaterialAccess.material_id == material_id)
        stmt = stmt.order_by(MaterialAccess.accessed_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_access_from_row(row) for row in rows]

    async def access_counts(
        self, *, user_id: str | None = None, material_ids: list[str] | None = None
    ) -> dict[str, int]:
        stmt = select(MaterialAccess.material_id, func.count(MaterialAccess.id))
        if user_id:
            stmt = stmt.where(MaterialAccess.user_id == user_id)
        if material_ids is not None:
            stmt = stmt.where(MaterialAccess.material_id.in_(material_ids))
        stmt = stmt.group_by(MaterialAccess.material_id)
        rows = (await self._session.execute(stmt)).all()
        return {material_id: count for material_id, count in rows}

    async def distinct_materials_accessed(self, user_id: str) -> int:
        stmt = select(func.count(distinct(MaterialAccess.material_id))).where(
            MaterialAccess.user_id == user_id
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def total_seconds(self, user_id: str, material_id: str) -> int | None:
        stmt = select(func.sum(MaterialAccess.duration_seconds)).where(
            MaterialAccess.user_id == user_id,
            MaterialAccess.material_id == material_id,
            MaterialAccess.duration_seconds.is_not(None),
        )
        total = (await self._session.execute(stmt)).scalar_one_or_none()
        return int(total) if total is not None else None
