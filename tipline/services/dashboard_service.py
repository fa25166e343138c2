"""
Aggregations for the admin dashboard.

Every headline metric is reported together with last month's value and
a trend flag. "up" means this month is at least as high as last month.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipline.models.prediction import Prediction
from tipline.models.transaction import Transaction
from tipline.models.user import User
from tipline.services.prediction_service import win_rate
from tipline.services.storage_service import storage_service

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


def this_month_range(now: Optional[datetime] = None) -> DateRange:
    """From the first of the current UTC month up to now."""
    now = now or datetime.now(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return DateRange(start, now)


def last_month_range(now: Optional[datetime] = None) -> DateRange:
    """The whole previous UTC month."""
    now = now or datetime.now(timezone.utc)
    first_of_this_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = first_of_this_month - timedelta(microseconds=1)
    start = end.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return DateRange(start, end)


def trend(this_month: float, last_month: float) -> str:
    return "up" if this_month >= last_month else "down"


async def _count_predictions(
    db: AsyncSession,
    status: Optional[str] = None,
    period: Optional[DateRange] = None,
) -> int:
    query = select(func.count(Prediction.id))
    if status:
        query = query.where(Prediction.status == status)
    if period:
        query = query.where(Prediction.created_at.between(period.start, period.end))
    return (await db.execute(query)).scalar_one()


async def _completed_transactions(
    db: AsyncSession,
    period: Optional[DateRange] = None,
) -> Dict[str, float]:
    """Count and revenue of completed transactions."""
    query = select(
        func.count(Transaction.id),
        func.coalesce(func.sum(Transaction.amount), 0),
    ).where(Transaction.status == "completed")
    if period:
        query = query.where(Transaction.created_at.between(period.start, period.end))
    count, total = (await db.execute(query)).one()
    return {"count": count, "revenue": float(total or 0)}


async def get_overview_stats(db: AsyncSession) -> Dict[str, Any]:
    """Overall win rate, active predictions, subscribers and monthly revenue."""
    this_month = this_month_range()
    last_month = last_month_range()

    wins_this = await _count_predictions(db, "win", this_month)
    losses_this = await _count_predictions(db, "lose", this_month)
    wins_last = await _count_predictions(db, "win", last_month)
    losses_last = await _count_predictions(db, "lose", last_month)
    rate_this = win_rate(wins_this, losses_this)
    rate_last = win_rate(wins_last, losses_last)

    active_now = await _count_predictions(db, "pending")
    active_this = await _count_predictions(db, "pending", this_month)
    active_last = await _count_predictions(db, "pending", last_month)

    total_subscribers = (
        await db.execute(select(func.count(User.id)).where(User.real_subscriber.is_(True)))
    ).scalar_one()
    completed_this = await _completed_transactions(db, this_month)
    completed_last = await _completed_transactions(db, last_month)

    return {
        "overall_win_rate": {
            "win_rate": rate_this,
            "last_month": rate_last,
            "status": trend(rate_this, rate_last),
        },
        "active_predictions": {
            "current": active_now,
            "last_month": active_last,
            "status": trend(active_this, active_last),
        },
        "total_subscribers": {
            "total": total_subscribers,
            "last_month": completed_last["count"],
            "status": trend(completed_this["count"], completed_last["count"]),
        },
        "monthly_revenue": {
            "value": completed_this["revenue"],
            "last_month": completed_last["revenue"],
            "status": trend(completed_this["revenue"], completed_last["revenue"]),
        },
    }


async def get_prediction_stats(db: AsyncSession) -> Dict[str, Any]:
    """Total records, active predictions, wins and win rate."""
    this_month = this_month_range()
    last_month = last_month_range()

    total_all = await _count_predictions(db)
    records_this = await _count_predictions(db, period=this_month)
    records_last = await _count_predictions(db, period=last_month)

    active_now = await _count_predictions(db, "pending")
    active_this = await _count_predictions(db, "pending", this_month)
    active_last = await _count_predictions(db, "pending", last_month)

    wins_this = await _count_predictions(db, "win", this_month)
    wins_last = await _count_predictions(db, "win", last_month)
    losses_this = await _count_predictions(db, "lose", this_month)
    losses_last = await _count_predictions(db, "lose", last_month)
    rate_this = win_rate(wins_this, losses_this)
    rate_last = win_rate(wins_last, losses_last)

    return {
        "total_records": {
            "total_records": total_all,
            "last_month": records_last,
            "status": trend(records_this, records_last),
        },
        "active_predictions": {
            "current": active_now,
            "last_month": active_last,
            "status": trend(active_this, active_last),
        },
        "total_win": {
            "total_win": wins_this,
            "last_month": wins_last,
            "status": trend(wins_this, wins_last),
        },
        "overall_win_rate": {
            "win_rate": rate_this,
            "last_month": rate_last,
            "status": trend(rate_this, rate_last),
        },
    }


async def get_earnings_stats(db: AsyncSession, year: int) -> Dict[str, Any]:
    """
    Earnings overview for the transactions dashboard.

    Args:
        db: Database session.
        year: Calendar year for the monthly earnings chart.

    Returns:
        Total earnings, user and paying-user counts, the Jan..Dec chart
        for the year and the 20 most recent users.
    """
    total_earnings = (await _completed_transactions(db))["revenue"]
    total_users = (await db.execute(select(func.count(User.id)))).scalar_one()
    total_subscriptions = (
        await db.execute(
            select(func.count(distinct(Transaction.user_id))).where(
                Transaction.status == "completed"
            )
        )
    ).scalar_one()

    year_range = DateRange(
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc),
    )
    result = await db.execute(
        select(Transaction.amount, Transaction.created_at).where(
            Transaction.status == "completed",
            Transaction.created_at.between(year_range.start, year_range.end),
        )
    )
    monthly = [0.0] * 12
    for amount, created_at in result.all():
        monthly[created_at.month - 1] += float(amount)

    recent = await db.execute(
        select(User).order_by(User.created_at.desc()).limit(20)
    )
    recent_users = [
        {
            "sl": index,
            "id": str(user.id),
            "name": user.name or "N/A",
            "email": user.email,
            "createdAt": user.created_at,
            "avatar": storage_service.url_for(user.avatar_url),
        }
        for index, user in enumerate(recent.scalars().all(), start=1)
    ]

    return {
        "totalEarnings": round(total_earnings, 2),
        "totalUsers": total_users,
        "totalSubscriptions": total_subscriptions,
        "earningsChart": {
            "year": year,
            "data": [
                {"month": name, "earnings": round(monthly[index], 2)}
                for index, name in enumerate(MONTH_NAMES)
            ],
        },
        "recentUsers": recent_users,
    }
