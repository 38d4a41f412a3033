from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.clients.database import get_session
from app.models.enums import Role
from app.repositories.user_repository import UserRecord, UserRepository


async def current_user(
    x_user_id: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
) -> UserRecord:
    """Resolve the user id forwarded by the upstream auth layer."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user id",
        )
    user = await UserRepository(session).get_user(x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return user


def require_role(role: Role) -> Callable[..., UserRecord]:
    def dependency(user: UserRecord = Depends(current_user)) -> UserRecord:
        if not user.has_role(role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{role.value} role required",
            )
        return user

    return dependency


EvaluatorPrincipal = Depends(require_role(Role.EVALUATOR))
StudentPrincipal = Depends(require_role(Role.STUDENT))
