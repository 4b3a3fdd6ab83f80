"""User service: identity records and the admin flag."""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import utcnow
from ..core.exceptions import NotFoundError
from ..models.user import User
from ..schemas.user import UpsertUserRequest
from .dialect import insert_for

logger = logging.getLogger(__name__)


class UserService:
    """Service for user-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_user(self, request: UpsertUserRequest) -> User:
        """
        Create the user on first contact, refresh profile fields afterwards.

        The admin flag is never part of the update set, so signing in cannot
        grant or revoke admin rights.
        """
        values = request.model_dump(exclude_unset=True)
        now = utcnow()

        insert = insert_for(self.db)
        stmt = insert(User).values(**values, created_at=now, updated_at=now)
        update_set = {key: stmt.excluded[key] for key in values if key != "id"}
        update_set["updated_at"] = now
        stmt = stmt.on_conflict_do_update(index_elements=[User.id], set_=update_set)

        await self.db.execute(stmt)
        await self.db.commit()

        user = await self.get_user(request.id)
        await self.db.refresh(user)

        logger.info("User upserted", extra={"user_id": user.id, "is_admin": user.is_admin})
        return user

    async def set_admin(self, user_id: str, is_admin: bool) -> User:
        """
        Grant or revoke admin rights.

        Raises:
            NotFoundError: If the user has never signed in
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(is_admin=is_admin, updated_at=utcnow())
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(resource_type="user", resource_id=user_id)
        await self.db.commit()

        user = await self.get_user(user_id)
        await self.db.refresh(user)

        logger.warning(
            "Admin flag changed",
            extra={"user_id": user_id, "is_admin": is_admin}
        )
        return user
