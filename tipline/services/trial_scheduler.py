"""
Daily trial expiry job.

New accounts get subscriber access for a short trial. Once a day (at UTC
midnight) users who never paid and are past the trial lose access.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.config import get_settings
from tipline.db.database import async_session_maker
from tipline.models.user import User

logger = logging.getLogger(__name__)


async def expire_trial_subscribers(db: AsyncSession, trial_days: int) -> int:
    """
    Revoke trial access for unpaid users older than the trial period.

    Args:
        db: Database session.
        trial_days: Length of the free trial in days.

    Returns:
        Number of users updated.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(days=trial_days)
    result = await db.execute(
        update(User)
        .where(
            User.type == "user",
            User.real_subscriber.is_(False),
            User.is_subscriber.is_(True),
            User.created_at <= cutoff,
        )
        .values(is_subscriber=False)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


def seconds_until_next_midnight(now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (tomorrow - now).total_seconds()


class TrialExpiryScheduler:
    """Background loop running the trial expiry once a day."""

    def __init__(self):
        self.settings = get_settings()
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> int:
        async with async_session_maker() as session:
            count = await expire_trial_subscribers(session, self.settings.trial_days)
        if count > 0:
            logger.info(f"Updated {count} user(s) subscriber status to false")
        return count

    async def _loop(self) -> None:
        while self.is_running:
            await asyncio.sleep(seconds_until_next_midnight())
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Trial expiry job failed: {e}", exc_info=True)

    def start(self) -> None:
        """Start the scheduler background loop."""
        if self.is_running:
            logger.warning("Trial expiry scheduler is already running")
            return
        self.is_running = True
        self._task = asyncio.create_task(self._loop(), name="trial-expiry")
        logger.info("Trial expiry scheduled daily at 00:00 UTC")

    async def stop(self) -> None:
        """Stop the loop and wait for the task to finish."""
        self.is_running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Trial expiry scheduler stopped")


# Global scheduler instance
trial_scheduler = TrialExpiryScheduler()
