"""
Prediction statistics.

Computes per-category win rates from decided predictions. Category
rates are shown next to every prediction in the user feed, so they are
cached in memory for a short time and invalidated whenever predictions
change.
"""

import asyncio
import logging
import math
from typing import Dict, List, Optional

from cachetools import TTLCache
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.models.prediction import PREDICTION_CATEGORIES, Prediction

logger = logging.getLogger(__name__)


def win_rate(wins: int, losses: int) -> int:
    """
    Win percentage over decided predictions, rounded half up.

    Pending and cancelled predictions never count; with nothing decided
    the rate is 0.
    """
    decided = wins + losses
    if decided == 0:
        return 0
    return math.floor(wins * 100 / decided + 0.5)


class PredictionService:
    """
    Service for prediction statistics.

    Features:
    - In-memory caching of category counts with 60-second TTL
    - Explicit invalidation after writes
    """

    def __init__(self):
        self._cache: TTLCache = TTLCache(maxsize=8, ttl=60)
        self._lock = asyncio.Lock()

    async def _category_counts(self, db: AsyncSession) -> Dict[str, Dict[str, int]]:
        """Counts of win/lose/pending predictions per category."""
        cache_key = "category_counts"

        if cache_key in self._cache:
            return self._cache[cache_key]

        async with self._lock:
            if cache_key in self._cache:
                return self._cache[cache_key]

            result = await db.execute(
                select(Prediction.category, Prediction.status, func.count(Prediction.id))
                .where(Prediction.status.in_(("win", "lose", "pending")))
                .group_by(Prediction.category, Prediction.status)
            )

            counts: Dict[str, Dict[str, int]] = {
                category: {"win": 0, "lose": 0, "pending": 0}
                for category in PREDICTION_CATEGORIES
            }
            for category, status, count in result.all():
                if category in counts:
                    counts[category][status] = count

            self._cache[cache_key] = counts
            return counts

    async def get_category_win_rates(self, db: AsyncSession) -> Dict[str, int]:
        """Win rate per category."""
        counts = await self._category_counts(db)
        return {
            category: win_rate(c["win"], c["lose"])
            for category, c in counts.items()
        }

    async def get_category_summary(self, db: AsyncSession) -> List[Dict[str, object]]:
        """Win rate and number of active (pending) predictions per category."""
        counts = await self._category_counts(db)
        return [
            {
                "category": category,
                "winRate": win_rate(c["win"], c["lose"]),
                "active": c["pending"],
            }
            for category, c in counts.items()
        ]

    def invalidate_cache(self, key: Optional[str] = None) -> None:
        """
        Invalidate cached statistics.

        Args:
            key: Specific cache key to invalidate, or None to clear all.
        """
        if key:
            self._cache.pop(key, None)
        else:
            self._cache.clear()
        logger.debug("Cleared prediction statistics cache")


# Global service instance
prediction_service = PredictionService()
