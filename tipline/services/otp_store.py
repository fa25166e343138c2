"""
Short-lived OTP records kept in Redis.

Each pending registration or password reset is a Redis hash keyed by
purpose and email, with a TTL. The hash also stores an explicit
expiration timestamp (epoch milliseconds) that is checked on verify.
"""

import logging
import secrets
import time
from typing import Dict, Optional

import redis.asyncio as aioredis

from tipline.config import get_settings

logger = logging.getLogger(__name__)

REGISTER = "register-verify-otp"
FORGOT_PASSWORD = "forgot-password-otp"


def generate_otp() -> str:
    """Random 4-digit code."""
    return str(1000 + secrets.randbelow(9000))


def expiration_ms(ttl_seconds: int) -> str:
    """Epoch milliseconds ttl_seconds from now, as stored in the hash."""
    return str(int(time.time() * 1000) + ttl_seconds * 1000)


def is_expired(record: Dict[str, str]) -> bool:
    """Check the stored expiration of an OTP record."""
    try:
        return int(time.time() * 1000) > int(record.get("expiration", "0"))
    except ValueError:
        return True


class OtpStore:
    """Redis-backed OTP records."""

    def __init__(self, redis_url: Optional[str] = None):
        self._redis_url = redis_url or get_settings().redis_url
        self._client: Optional[aioredis.Redis] = None

    def _get_client(self) -> aioredis.Redis:
        """Get or create the Redis client."""
        if self._client is None:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
        return self._client

    @staticmethod
    def _key(purpose: str, email: str) -> str:
        return f"{purpose}:{email}"

    async def save(
        self,
        purpose: str,
        email: str,
        fields: Dict[str, str],
        ttl_seconds: int,
    ) -> None:
        """
        Write (or merge into) the record and reset its TTL atomically.

        Args:
            purpose: Record namespace, REGISTER or FORGOT_PASSWORD.
            email: Email the record belongs to.
            fields: Hash fields to set.
            ttl_seconds: Time to live for the whole record.
        """
        key = self._key(purpose, email)
        async with self._get_client().pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=fields)
            pipe.expire(key, ttl_seconds)
            await pipe.execute()

    async def load(self, purpose: str, email: str) -> Dict[str, str]:
        """Return the record, or an empty dict if it is missing or expired."""
        return await self._get_client().hgetall(self._key(purpose, email))

    async def delete(self, purpose: str, email: str) -> None:
        await self._get_client().delete(self._key(purpose, email))

    async def ping(self) -> bool:
        try:
            return bool(await self._get_client().ping())
        except aioredis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Global store instance
otp_store = OtpStore()


def get_otp_store() -> OtpStore:
    """FastAPI dependency returning the shared OTP store."""
    return otp_store
