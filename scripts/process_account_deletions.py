"""Periodic maintenance: finish account deletions and purge expired credentials.

Meant to run from cron or a scheduled job, e.g. once an hour.
"""

import asyncio

import structlog

from app.config import settings
from app.database import AsyncSessionLocal, engine
from app.middleware.logging import configure_logging
from app.services.account_deletion_service import AccountDeletionService
from app.services.session_service import SessionService

logger = structlog.get_logger()


async def run_maintenance() -> dict[str, int]:
    """
    Run every cleanup job once.

    Returns:
        Number of rows handled by each job
    """
    session_service = SessionService(settings)
    deletion_service = AccountDeletionService(settings, session_service=session_service)

    async with AsyncSessionLocal() as db:
        results = {
            "expired_deletion_requests": await deletion_service.cleanup_expired_requests(db),
            "anonymized_accounts": await deletion_service.process_confirmed_deletions(db),
            "expired_sessions": await session_service.cleanup_expired_sessions(db),
            "expired_remember_tokens": await session_service.cleanup_expired_remember_tokens(db),
        }

    logger.info("maintenance_completed", **results)
    return results


async def main() -> None:
    configure_logging()
    try:
        await run_maintenance()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
