"""SQLAlchemy models for the Tipline database."""

from tipline.models.app_setting import AppSetting
from tipline.models.prediction import Prediction
from tipline.models.promo_code import PromoCode
from tipline.models.subscription_package import SubscriptionPackage
from tipline.models.transaction import Transaction
from tipline.models.user import User

__all__ = [
    "AppSetting",
    "Prediction",
    "PromoCode",
    "SubscriptionPackage",
    "Transaction",
    "User",
]
