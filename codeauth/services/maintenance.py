from dataclasses import dataclass, field

from loguru import logger

from codeauth.core.logger import mask
from codeauth.core.security import TokenCipher
from codeauth.services.session_engine import SessionEngine


@dataclass
class DuplicateCleanupReport:
    scanned: int = 0
    unique: int = 0
    deleted: int = 0
    skipped: int = 0
    deleted_ids: list[str] = field(default_factory=list)


async def cleanup_expired_sessions(engine: SessionEngine) -> int:
    """Periodic sweep. Safe to run alongside live traffic."""
    count = await engine.delete_expired_sessions()
    logger.info(f"Expired session sweep finished: {count} removed")
    return count


async def cleanup_duplicate_sessions(
    engine: SessionEngine, cipher: TokenCipher
) -> DuplicateCleanupReport:
    """Keep only the newest session per (identity, api_key).

    User tokens are usually minted with random nonces, so two tokens for the
    same identity differ; they are decrypted to find the real identity.
    Sessions whose token does not decrypt under ``cipher`` are left alone.
    Delegated sessions are never treated as duplicates of their parent.
    """
    report = DuplicateCleanupReport()
    seen: dict[tuple[bytes, str], str] = {}

    sessions = await engine.list_sessions()
    report.scanned = len(sessions)

    for session in sessions:
        if session.is_delegated:
            continue

        identity = cipher.decrypt(session.user_token)
        if identity is None:
            report.skipped += 1
            logger.warning(
                f"Skipping session {mask(session.session_id)} - failed to decrypt user token"
            )
            continue

        key = (identity, session.api_key)
        if key in seen:
            # Newest first, so anything after the first hit is older
            if await engine.delete_session(session.session_id):
                report.deleted += 1
                report.deleted_ids.append(session.session_id)
            else:
                logger.warning(f"Session {mask(session.session_id)} already gone")
        else:
            seen[key] = session.session_id

    report.unique = len(seen)
    logger.info(
        f"Duplicate cleanup: scanned={report.scanned} unique={report.unique} "
        f"deleted={report.deleted} skipped={report.skipped}"
    )
    return report
