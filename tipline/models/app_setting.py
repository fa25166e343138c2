"""AppSetting SQLAlchemy model."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tipline.db.database import Base
from tipline.models.mixins import IdMixin, TimestampMixin

SETTING_KEYS = ("about_us", "privacy_policy", "terms_and_conditions")


class AppSetting(IdMixin, TimestampMixin, Base):
    """Static content page editable from the admin panel."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(
        String,
        unique=True,
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<AppSetting {self.key}>"
