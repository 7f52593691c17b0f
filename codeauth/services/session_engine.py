import hmac
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codeauth.core.constants import DEFAULT_CODE_VALIDITY, DEFAULT_SESSION_DURATION
from codeauth.core.exceptions.domain import (
    DuplicateUserError,
    EmptyTokenError,
    InvalidDurationError,
    NestedDelegationError,
    ParentSessionNotFoundError,
    ParentSessionNotValidatedError,
    SessionNotFoundError,
    UserNotFoundError,
)
from codeauth.core.exceptions.infrastructure import StorageError
from codeauth.core.logger import mask, sanitize_dict
from codeauth.core.security import generate_code, generate_session_id
from codeauth.models.session import Session
from codeauth.repos.session import SessionRepo
from codeauth.repos.user import UserRepo
from codeauth.schemas.session import SessionCodeUpdate, SessionCreate, SessionRecord
from codeauth.schemas.user import UserCreate, UserRecord

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_duration(seconds: int | None, default: int) -> int:
    """``None`` or ``0`` means the configured default; negative lifetimes are rejected."""
    if not seconds:
        return default
    if seconds < 0:
        raise InvalidDurationError()
    return seconds


class SessionEngine:
    """Authoritative store and state machine for users and code-validated sessions.

    Every public coroutine runs in its own transaction: it commits on success
    and rolls back on any error, so callers never observe a half-applied
    operation. Storage failures surface as ``StorageError``; expected outcomes
    are ``DomainError`` subclasses, ``bool`` results or ``None``.

    Identity is only ever held as an opaque token. The engine never decrypts it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock = utcnow,
        default_duration: int = DEFAULT_SESSION_DURATION,
        default_code_validity: int = DEFAULT_CODE_VALIDITY,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self.default_duration = default_duration
        self.default_code_validity = default_code_validity

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Storage failure: {e.__class__.__name__}: {e}")
            raise StorageError(f"Database operation failed: {e}") from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    def _now(self) -> datetime:
        return self._clock()

    async def _new_session_id(self, repo: SessionRepo) -> str:
        while True:
            session_id = generate_session_id()
            if not await repo.exists(session_id):
                return session_id
            logger.warning("Session id collision, regenerating")

    async def _load_active(self, repo: SessionRepo, session_id: str) -> Session | None:
        """Fetch a session row, deleting it (and its descendants) if it has expired.

        A delegated session is only reachable while its parent is; since depth
        is capped at one, this costs at most one extra lookup.
        """
        row = await repo.get_by_id(session_id)
        if row is None:
            return None

        now = self._now()
        if row.expires_at <= now:
            removed = await repo.delete_cascade([session_id])
            logger.debug(f"Expired session {mask(session_id)} removed on read ({removed} rows)")
            return None

        if row.parent_session_id is not None:
            parent = await repo.get_by_id(row.parent_session_id)
            if parent is None or parent.expires_at <= now:
                root = row.parent_session_id if parent is not None else session_id
                removed = await repo.delete_cascade([root])
                logger.debug(
                    f"Delegated session {mask(session_id)} dropped with its parent ({removed} rows)"
                )
                return None

        return row

    # ========== USERS ==========

    async def create_user(self, token: str) -> UserRecord:
        """Create a user for an opaque token.

        Raises:
            EmptyTokenError: If the token is empty.
            DuplicateUserError: If a user with this token already exists.
        """
        if not token:
            raise EmptyTokenError()

        async with self._transaction() as db:
            users = UserRepo(db)
            if await users.exists(token):
                raise DuplicateUserError()
            try:
                user = await users.create_one(
                    UserCreate(token=token, last_activity_at=self._now())
                )
            except IntegrityError as e:
                raise DuplicateUserError() from e

            logger.info(f"User created: {mask(token)}")
            return UserRecord.model_validate(user)

    async def get_user(self, token: str) -> UserRecord | None:
        async with self._transaction() as db:
            user = await UserRepo(db).get_by_token(token)
            return UserRecord.model_validate(user) if user else None

    async def get_user_by_session_id(self, session_id: str) -> UserRecord | None:
        """Resolve the user bound to an active session."""
        async with self._transaction() as db:
            row = await self._load_active(SessionRepo(db), session_id)
            if row is None:
                return None
            user = await UserRepo(db).get_by_token(row.user_token)
            return UserRecord.model_validate(user) if user else None

    async def touch_user(self, token: str) -> bool:
        async with self._transaction() as db:
            return await UserRepo(db).touch(token, self._now())

    async def delete_user(self, token: str) -> bool:
        """Delete a user and every session bound to it."""
        async with self._transaction() as db:
            sessions = SessionRepo(db)
            removed = await sessions.delete_cascade(await sessions.get_ids_for_user(token))
            deleted = await UserRepo(db).delete_by_token(token)
            if deleted:
                logger.info(f"User deleted: {mask(token)} ({removed} sessions)")
            return deleted

    # ========== SESSION LIFECYCLE ==========

    async def create_session(
        self,
        user_token: str,
        api_key: str,
        duration_seconds: int | None = None,
        code_validity_seconds: int | None = None,
        replace_session_id: str | None = None,
    ) -> SessionRecord:
        """Create an unvalidated session with a fresh one-time code.

        With ``replace_session_id`` the call also rotates: children of the old
        session are re-parented to the new one, then the old row is deleted.

        Raises:
            EmptyTokenError: If ``user_token`` is empty.
            UserNotFoundError: If no user exists for ``user_token``.
            InvalidDurationError: If a duration is negative.
        """
        if not user_token:
            raise EmptyTokenError()

        duration = _resolve_duration(duration_seconds, self.default_duration)
        code_validity = _resolve_duration(code_validity_seconds, self.default_code_validity)

        async with self._transaction() as db:
            users = UserRepo(db)
            sessions = SessionRepo(db)

            if not await users.exists(user_token):
                raise UserNotFoundError()

            now = self._now()
            row = await sessions.create_one(
                SessionCreate(
                    session_id=await self._new_session_id(sessions),
                    user_token=user_token,
                    api_key=api_key,
                    code=generate_code(),
                    code_valid_until=now + timedelta(seconds=code_validity),
                    expires_at=now + timedelta(seconds=duration),
                    session_duration=duration,
                    validated=False,
                    created_at=now,
                )
            )

            if replace_session_id is not None:
                await self._replace(sessions, replace_session_id, row.session_id)

            await users.touch(user_token, now)
            logger.info(f"Session created: {mask(row.session_id)} for api_key {mask(api_key)}")
            return SessionRecord.model_validate(row)

    async def _replace(self, sessions: SessionRepo, old_id: str, new_id: str) -> None:
        moved = await sessions.reparent_children(old_id, new_id)
        removed = await sessions.delete_cascade([old_id])
        logger.debug(
            f"Session {mask(old_id)} replaced by {mask(new_id)} "
            f"({moved} children re-parented, {removed} rows removed)"
        )

    async def rotate_session(self, session_id: str, api_key: str | None = None) -> SessionRecord:
        """Replace a session's id while keeping its user, state and children.

        The new row copies ``user_token``, ``session_duration``, ``validated`` and
        ``parent_session_id`` and gets a fresh expiry. A rotated delegated
        session still carries no code.

        Raises:
            SessionNotFoundError: If the session is absent or expired.
        """
        async with self._transaction() as db:
            sessions = SessionRepo(db)
            old = await self._load_active(sessions, session_id)
            if old is None:
                # Commit first so the rollback on raise keeps any lazy expiry delete
                await db.commit()
                raise SessionNotFoundError()

            now = self._now()
            delegated = old.parent_session_id is not None
            row = await sessions.create_one(
                SessionCreate(
                    session_id=await self._new_session_id(sessions),
                    user_token=old.user_token,
                    api_key=old.api_key if api_key is None else api_key,
                    code=None if delegated else generate_code(),
                    code_valid_until=(
                        None if delegated else now + timedelta(seconds=self.default_code_validity)
                    ),
                    expires_at=now + timedelta(seconds=old.session_duration),
                    session_duration=old.session_duration,
                    validated=old.validated,
                    created_at=now,
                    parent_session_id=old.parent_session_id,
                )
            )
            await self._replace(sessions, session_id, row.session_id)
            await UserRepo(db).touch(row.user_token, now)

            logger.info(f"Session rotated: {mask(session_id)} -> {mask(row.session_id)}")
            return SessionRecord.model_validate(row)

    async def touch_session(
        self, session_id: str, new_duration_seconds: int | None = None
    ) -> SessionRecord | None:
        """Keep-alive: push ``expires_at`` out from now without changing the id."""
        duration = _resolve_duration(new_duration_seconds, self.default_duration)

        async with self._transaction() as db:
            sessions = SessionRepo(db)
            row = await self._load_active(sessions, session_id)
            if row is None:
                return None

            now = self._now()
            await sessions.extend_expiry(session_id, now + timedelta(seconds=duration), duration)
            await UserRepo(db).touch(row.user_token, now)
            await db.refresh(row)
            return SessionRecord.model_validate(row)

    async def get_session(self, session_id: str) -> SessionRecord | None:
        async with self._transaction() as db:
            row = await self._load_active(SessionRepo(db), session_id)
            if row is None:
                return None
            logger.debug(f"Session loaded: {sanitize_dict(row.to_dict())}")
            return SessionRecord.model_validate(row)

    async def list_sessions(self, user_token: str | None = None) -> list[SessionRecord]:
        """List stored sessions newest first, optionally for one user."""
        async with self._transaction() as db:
            rows = await SessionRepo(db).list_newest_first(user_token)
            return [SessionRecord.model_validate(r) for r in rows]

    # ========== VALIDATION ==========

    async def validate_code(self, session_id: str, code: str) -> bool:
        """True iff the session is live, holds this code, and the code is still valid."""
        async with self._transaction() as db:
            row = await self._load_active(SessionRepo(db), session_id)
            if row is None or row.code is None or row.code_valid_until is None:
                return False

            if not hmac.compare_digest(row.code.encode(), code.encode()):
                logger.debug(f"Code mismatch for session {mask(session_id)}")
                return False

            return self._now() < row.code_valid_until

    async def validate_session(self, session_id: str) -> bool:
        """Mark a session as validated. Idempotent."""
        async with self._transaction() as db:
            sessions = SessionRepo(db)
            if await self._load_active(sessions, session_id) is None:
                return False
            validated = await sessions.set_validated(session_id)
            if validated:
                logger.info(f"Session validated: {mask(session_id)}")
            return validated

    async def is_session_validated(self, session_id: str) -> bool:
        session = await self.get_session(session_id)
        return session.validated if session else False

    async def regenerate_session_code(
        self, session_id: str, code_validity_seconds: int | None = None
    ) -> SessionRecord | None:
        """Issue a new code so a consumed one cannot be replayed.

        Returns None for missing sessions and for delegated sessions, which
        never hold a code.
        """
        code_validity = _resolve_duration(code_validity_seconds, self.default_code_validity)

        async with self._transaction() as db:
            sessions = SessionRepo(db)
            row = await self._load_active(sessions, session_id)
            if row is None:
                return None
            if row.parent_session_id is not None:
                logger.debug(f"Refusing to assign a code to delegated session {mask(session_id)}")
                return None

            row = await sessions.update_by_id(
                session_id,
                SessionCodeUpdate(
                    code=generate_code(),
                    code_valid_until=self._now() + timedelta(seconds=code_validity),
                ),
            )
            return SessionRecord.model_validate(row) if row else None

    async def is_session_active(self, session_id: str) -> bool:
        async with self._transaction() as db:
            return await self._load_active(SessionRepo(db), session_id) is not None

    async def check_session_access(self, session_id: str, api_key: str) -> bool:
        """True iff the session is live and was created by ``api_key``.

        This is the isolation boundary between consumers; callers must check it
        before any externally exposed session mutation.
        """
        async with self._transaction() as db:
            row = await self._load_active(SessionRepo(db), session_id)
            if row is None:
                return False
            allowed = hmac.compare_digest(row.api_key.encode(), api_key.encode())
            if not allowed:
                logger.warning(f"Session {mask(session_id)} accessed with a foreign api_key")
            return allowed

    # ========== DELEGATION ==========

    async def create_delegated_session(
        self,
        parent_session_id: str,
        target_api_key: str,
        duration_seconds: int | None = None,
    ) -> SessionRecord:
        """Spawn an already-validated child session for another consumer.

        Raises:
            ParentSessionNotFoundError: If the parent is absent or expired.
            ParentSessionNotValidatedError: If the parent has not been validated.
            NestedDelegationError: If the parent is itself a delegated session.
            InvalidDurationError: If ``duration_seconds`` is negative.
        """
        duration = _resolve_duration(duration_seconds, self.default_duration)

        async with self._transaction() as db:
            sessions = SessionRepo(db)
            parent = await self._load_active(sessions, parent_session_id)
            if parent is None:
                await db.commit()
                raise ParentSessionNotFoundError()
            if not parent.validated:
                raise ParentSessionNotValidatedError()
            if parent.parent_session_id is not None:
                raise NestedDelegationError()

            now = self._now()
            row = await sessions.create_one(
                SessionCreate(
                    session_id=await self._new_session_id(sessions),
                    user_token=parent.user_token,
                    api_key=target_api_key,
                    expires_at=now + timedelta(seconds=duration),
                    session_duration=duration,
                    validated=True,
                    created_at=now,
                    parent_session_id=parent.session_id,
                )
            )

            logger.info(
                f"Delegated session {mask(row.session_id)} created from {mask(parent_session_id)} "
                f"for api_key {mask(target_api_key)}"
            )
            return SessionRecord.model_validate(row)

    # ========== DELETION ==========

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and every session delegated from it."""
        async with self._transaction() as db:
            sessions = SessionRepo(db)
            if not await sessions.exists(session_id):
                return False
            removed = await sessions.delete_cascade([session_id])
            logger.info(f"Session deleted: {mask(session_id)} ({removed} rows)")
            return True

    async def delete_user_sessions(self, user_token: str) -> int:
        """Delete all sessions of a user. Returns rows removed, descendants included."""
        async with self._transaction() as db:
            sessions = SessionRepo(db)
            removed = await sessions.delete_cascade(await sessions.get_ids_for_user(user_token))
            if removed:
                logger.info(f"Deleted {removed} sessions for user {mask(user_token)}")
            return removed

    async def delete_expired_sessions(self, before: datetime | None = None) -> int:
        """Sweep sessions whose ``expires_at`` lies before ``before`` (default: now).

        Descendants of expired sessions go with them. Returns rows removed.
        """
        cutoff = before or self._now()

        async with self._transaction() as db:
            sessions = SessionRepo(db)
            removed = await sessions.delete_cascade(await sessions.get_expired_ids(cutoff))
            if removed:
                logger.info(f"Cleaned up {removed} expired sessions")
            return removed
