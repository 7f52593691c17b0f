from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from codeauth.models.user import User
from codeauth.repos.base import BaseRepository
from codeauth.schemas.user import UserCreate


class UserRepo(BaseRepository[User, UserCreate, UserCreate]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_token(self, token: str) -> User | None:
        return await self.get_by_id(token)

    async def touch(self, token: str, now: datetime) -> bool:
        """Set last_activity_at for a user. Returns False if the user is missing."""
        stmt = (
            update(User)
            .where(User.token == token)
            .values(last_activity_at=now)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0  # type: ignore

    async def delete_by_token(self, token: str) -> bool:
        return await self.delete_by_ids([token]) > 0
