"""User SQLAlchemy model."""

from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from tipline.db.database import Base
from tipline.models.mixins import IdMixin, TimestampMixin

USER_TYPES = ("user", "admin")


class User(IdMixin, TimestampMixin, Base):
    """
    App user or admin.

    Attributes:
        id: UUID primary key
        name: Display name
        email: Unique email address
        password: bcrypt hash, NULL for social sign-in accounts
        type: Access level - user or admin
        avatar_url: Stored avatar filename
        phone: Optional phone number
        gender: Optional gender
        date_of_birth: Optional date of birth as entered by the user
        category: Preferred prediction category
        is_subscriber: Has access, either trial or paid
        real_subscriber: Has completed at least one payment
        created_at: When the user was created
        updated_at: When the user was last updated
    """

    __tablename__ = "users"

    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    email: Mapped[str] = mapped_column(
        String,
        unique=True,
        nullable=False,
        index=True,
    )
    password: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    type: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default="user",
        index=True,
    )
    avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    date_of_birth: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    is_subscriber: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    real_subscriber: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.type})>"
