from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from codeauth.models.session import Session
from codeauth.repos.base import BaseRepository
from codeauth.schemas.session import SessionCodeUpdate, SessionCreate


class SessionRepo(BaseRepository[Session, SessionCreate, SessionCodeUpdate]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Session)

    async def collect_descendants(self, session_ids: list[str]) -> list[str]:
        """Return every session whose delegation chain roots at one of ``session_ids``."""
        found: list[str] = []
        seen = set(session_ids)
        frontier = list(session_ids)
        while frontier:
            stmt = select(Session.session_id).where(Session.parent_session_id.in_(frontier))
            result = await self.session.execute(stmt)
            frontier = [sid for sid in result.scalars().all() if sid not in seen]
            seen.update(frontier)
            found.extend(frontier)
        return found

    async def delete_cascade(self, session_ids: list[str]) -> int:
        """Delete sessions together with all of their descendants. Returns rows removed.

        Rows are counted before the DELETE: with foreign keys on, SQLite removes
        children through ON DELETE CASCADE and leaves them out of ``rowcount``.
        """
        if not session_ids:
            return 0
        descendants = await self.collect_descendants(session_ids)
        targets = list(dict.fromkeys(session_ids + descendants))

        stmt = select(Session.session_id).where(Session.session_id.in_(targets))
        existing = list((await self.session.execute(stmt)).scalars().all())
        await self.delete_by_ids(existing)
        return len(existing)

    async def reparent_children(self, old_parent_id: str, new_parent_id: str) -> int:
        stmt = (
            update(Session)
            .where(Session.parent_session_id == old_parent_id)
            .values(parent_session_id=new_parent_id)
        )
        result = await self.session.execute(stmt)
        return result.rowcount  # type: ignore

    async def set_validated(self, session_id: str) -> bool:
        stmt = (
            update(Session)
            .where(Session.session_id == session_id)
            .values(validated=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0  # type: ignore

    async def extend_expiry(self, session_id: str, expires_at: datetime, duration: int) -> bool:
        stmt = (
            update(Session)
            .where(Session.session_id == session_id)
            .values(expires_at=expires_at, session_duration=duration)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0  # type: ignore

    async def get_ids_for_user(self, user_token: str) -> list[str]:
        stmt = select(Session.session_id).where(Session.user_token == user_token)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_expired_ids(self, before: datetime) -> list[str]:
        stmt = select(Session.session_id).where(Session.expires_at < before)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_newest_first(self, user_token: str | None = None) -> list[Session]:
        stmt = select(Session).order_by(Session.created_at.desc(), Session.session_id)
        if user_token is not None:
            stmt = stmt.where(Session.user_token == user_token)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
