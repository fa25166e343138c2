"""Transaction SQLAlchemy model."""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tipline.db.database import Base
from tipline.models.mixins import IdMixin, TimestampMixin


class Transaction(IdMixin, TimestampMixin, Base):
    """
    One checkout attempt for the subscription package.

    Created as pending when the Stripe Checkout Session is opened and
    completed by the checkout.session.completed webhook.
    """

    __tablename__ = "transactions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_package_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("subscription_packages.id", ondelete="RESTRICT"),
        nullable=False,
    )
    promo_code_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("promo_codes.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
    )
    original_amount: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
    )
    discount_amount: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
        default=0,
    )
    currency: Mapped[str] = mapped_column(String, nullable=False, default="usd")
    stripe_session_id: Mapped[str] = mapped_column(
        String,
        unique=True,
        nullable=False,
        index=True,
    )
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="pending",
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.stripe_session_id} ({self.status})>"
