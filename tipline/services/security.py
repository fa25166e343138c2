"""
Password hashing and JWT issuing/validation.

Tokens carry the user id, email and account type, and are signed with
the shared HS256 secret from settings.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from passlib.context import CryptContext

from tipline.config import get_settings

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Password hashing and verification using bcrypt."""

    def __init__(self, rounds: int = 10):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a plain text password."""
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        """
        Verify a password against a stored hash.

        Accounts created through social sign-in have no hash and never match.
        """
        if not hashed_password:
            return False
        return self._context.verify(plain_password, hashed_password)


class TokenService:
    """Service for creating and validating access tokens."""

    def __init__(self):
        self.settings = get_settings()

    def create_token(self, user_id: str, email: str, user_type: str) -> str:
        """
        Create a signed access token.

        Args:
            user_id: User ID to encode in the token.
            email: User email.
            user_type: Account type, user or admin.

        Returns:
            Encoded JWT.
        """
        now = datetime.now(timezone.utc)
        payload = {
            "id": user_id,
            "email": email,
            "type": user_type,
            "iat": now,
            "exp": now + timedelta(days=self.settings.jwt_expire_days),
        }
        return jwt.encode(
            payload,
            self.settings.jwt_secret_key,
            algorithm=self.settings.jwt_algorithm,
        )

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a token and return its claims.

        Raises:
            ValueError: If the token is expired, malformed or missing claims.
        """
        try:
            claims = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except ExpiredSignatureError:
            raise ValueError("Token has expired")
        except JWTError as e:
            logger.debug(f"JWT decode failed: {e}")
            raise ValueError("Invalid token")

        if not claims.get("id"):
            raise ValueError("Invalid token claims")
        return claims


# Global service instances
password_hasher = PasswordHasher()
token_service = TokenService()
