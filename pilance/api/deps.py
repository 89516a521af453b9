import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pilance.common.exceptions import NotAuthenticatedError, PermissionDeniedError
from pilance.common.security import decode_token
from pilance.core.access.policy import Principal
from pilance.core.ledger import Ledger
from pilance.db.models.user import User
from pilance.db.repositories import SqlLedger
from pilance.db.session import async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_ledger(db: AsyncSession = Depends(get_db)) -> Ledger:
    return SqlLedger(db)


async def get_current_user(
    authorization: str | None = Header(None, description="Bearer <token>"),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        raise NotAuthenticatedError("Missing or malformed authorization header")

    token = authorization[len("Bearer "):]
    try:
        payload = decode_token(token)
    except ValueError:
        raise NotAuthenticatedError("Invalid or expired token")

    if payload.get("type") != "access":
        raise NotAuthenticatedError("Invalid token type")

    user_id = payload.get("sub")
    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        raise NotAuthenticatedError("Invalid token payload")

    result = await db.execute(
        select(User).where(User.id == user_uuid, User.is_deleted.is_(False))
    )
    user = result.scalar_one_or_none()

    if not user:
        raise NotAuthenticatedError("Unknown user")
    if not user.is_active:
        raise PermissionDeniedError("User account is inactive")

    return user


async def get_principal(current_user: User = Depends(get_current_user)) -> Principal:
    return Principal.from_user(current_user)
