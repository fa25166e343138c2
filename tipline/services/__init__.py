"""Service modules for the Tipline API."""

from tipline.services.email_service import EmailService, email_service
from tipline.services.otp_store import OtpStore, otp_store
from tipline.services.prediction_service import PredictionService, prediction_service
from tipline.services.security import (
    PasswordHasher,
    TokenService,
    password_hasher,
    token_service,
)
from tipline.services.storage_service import StorageService, storage_service
from tipline.services.stripe_service import StripeService, stripe_service
from tipline.services.trial_scheduler import TrialExpiryScheduler, trial_scheduler

__all__ = [
    "EmailService",
    "email_service",
    "OtpStore",
    "otp_store",
    "PasswordHasher",
    "password_hasher",
    "PredictionService",
    "prediction_service",
    "StorageService",
    "storage_service",
    "StripeService",
    "stripe_service",
    "TokenService",
    "token_service",
    "TrialExpiryScheduler",
    "trial_scheduler",
]
