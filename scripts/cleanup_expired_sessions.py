#!/usr/bin/env python3
"""
Delete expired sessions (and everything delegated from them).

Meant for cron, e.g. every five minutes:
    */5 * * * * cd /srv/codeauth && python scripts/cleanup_expired_sessions.py
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from codeauth.core.exceptions.base import AppException
from codeauth.main import init_app
from codeauth.services.maintenance import cleanup_expired_sessions
from codeauth.utils.async_helpers import run_async


async def _run() -> int:
    app = await init_app()
    try:
        return await cleanup_expired_sessions(app.sessions)
    finally:
        await app.close()


def main() -> int:
    try:
        count = run_async(_run())
    except AppException as e:
        logger.error(f"Expired session cleanup failed: {e.message}")
        return 1
    print(f"Deleted {count} expired sessions")
    return 0


if __name__ == "__main__":
    sys.exit(main())
