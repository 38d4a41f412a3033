from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import Role, UserStatus
from app.repositories.tables import User, to_iso


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str
    name: str
    role: Role
    status: UserStatus
    hospital: str | None
    created_at: str | None

    @property
    def is_active(self) -> bool:
        return self.status is UserStatus.ACTIVE

    def has_role(self, role: Role) -> bool:
        return self.role is role and self.is_active


def user_from_row(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        status=UserStatus(row.status),
        hospital=row.hospital,
        created_at=to_iso(row.created_at),
    )


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_user(self, user_id: str) -> UserRecord | None:
        row = await self._session.get(User, user_id)
        return user_from_row(row) if row else None

    async def lock_user(self, user_id: str) -> UserRecord | None:
        """Row-lock the user for the rest of the transaction."""
        stmt = select(User).where(User.id == user_id).with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return user_from_row(row) if row else None

    async def create_user(
        self,
        *,
        email: str,
        name: str,
        role: Role,
        status: UserStatus = UserStatus.ACTIVE,
        hospital: str | None = None,
        user_id: str | None = None,
    ) -> UserRecord:
        row = User(email=email, name=name, role=role, status=status, hospital=hospital)
        if user_id:
            row.id = user_id
        self._session.add(row)
        await self._session.flush()
        return user_from_row(row)

    async def get_by_email(self, email: str) -> UserRecord | None:
        stmt = select(User).where(User.email == email)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return user_from_row(row) if row else None
