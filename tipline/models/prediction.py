"""Prediction SQLAlchemy model."""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tipline.db.database import Base
from tipline.models.mixins import IdMixin, TimestampMixin

PREDICTION_CATEGORIES = ("Casino", "Sports", "Stocks", "Crypto")
PREDICTION_STATUSES = ("pending", "cancel", "win", "lose")


class Prediction(IdMixin, TimestampMixin, Base):
    """
    A published tip in one of the four categories.

    Status moves from pending to win, lose or cancel once the outcome
    is known. Only win and lose count towards the win rate.
    """

    __tablename__ = "predictions"

    category: Mapped[str] = mapped_column(
        String,
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="pending",
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Prediction {self.category} ({self.status})>"
