"""PromoCode SQLAlchemy model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tipline.db.database import Base
from tipline.models.mixins import IdMixin, TimestampMixin, as_utc, utcnow


class PromoCode(IdMixin, TimestampMixin, Base):
    """
    Percentage discount code with an optional usage cap.

    Mirrored in Stripe as a coupon plus a promotion code.

    Attributes:
        code: Unique upper-cased code
        discount: Percent off, 0 to 100
        max_uses: Maximum redemptions, NULL for unlimited
        used_count: Completed payments that used the code
        is_active: Whether the code can be applied
        expires_at: When the code expires
        stripe_coupon_id: Stripe coupon ID
        stripe_promotion_code_id: Stripe promotion code ID
    """

    __tablename__ = "promo_codes"

    code: Mapped[str] = mapped_column(
        String,
        unique=True,
        nullable=False,
        index=True,
    )
    discount: Mapped[float] = mapped_column(Float, nullable=False)
    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    stripe_coupon_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    stripe_promotion_code_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return f"<PromoCode {self.code} ({self.discount}%)>"

    @property
    def is_expired(self) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and utcnow() > expires_at

    @property
    def is_exhausted(self) -> bool:
        return bool(self.max_uses) and self.used_count >= self.max_uses
