#!/usr/bin/env python3
"""
Keep only the newest session per (user identity, API key) and delete the rest.

Tokens are decrypted with ENCRYPTION_KEY to find the real identity; sessions
whose token does not decrypt are skipped.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from codeauth.core.exceptions.base import AppException
from codeauth.main import init_app
from codeauth.services.maintenance import DuplicateCleanupReport, cleanup_duplicate_sessions
from codeauth.utils.async_helpers import run_async


async def _run() -> DuplicateCleanupReport:
    app = await init_app()
    try:
        return await cleanup_duplicate_sessions(app.sessions, app.cipher)
    finally:
        await app.close()


def main() -> int:
    try:
        report = run_async(_run())
    except AppException as e:
        logger.error(f"Duplicate session cleanup failed: {e.message}")
        return 1

    print("Cleanup completed:")
    print(f"  - Total sessions scanned: {report.scanned}")
    print(f"  - Unique user/API-key combinations: {report.unique}")
    print(f"  - Duplicate sessions deleted: {report.deleted}")
    print(f"  - Sessions with invalid tokens (skipped): {report.skipped}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
