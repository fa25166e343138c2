"""SubscriptionPackage SQLAlchemy model."""

from typing import List, Optional

from sqlalchemy import JSON, Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from tipline.db.database import Base
from tipline.models.mixins import IdMixin, TimestampMixin


class SubscriptionPackage(IdMixin, TimestampMixin, Base):
    """
    The purchasable access package, mirrored as a Stripe product and price.

    The most recently created row is the live package.

    Attributes:
        name: Stripe product name
        title: Title shown in the app
        description: Bullet points shown in the app
        amount: Price in major currency units
        currency: ISO currency code
        duration: Free-form duration label (e.g. "30")
        is_active: Whether checkout is open
        stripe_product_id: Stripe product ID
        stripe_price_id: Current Stripe price ID
    """

    __tablename__ = "subscription_packages"

    name: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    amount: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="usd",
    )
    duration: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    stripe_product_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    stripe_price_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return f"<SubscriptionPackage {self.name} ({self.amount} {self.currency})>"
