"""Redis client configuration and utilities."""

from typing import cast

import redis

from app.config import settings
from app.core.security import fingerprint_identifier

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password or None,
            db=settings.redis_db,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        client = get_redis_client()
        client.ping()
        return True
    except Exception:
        return False


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


# Rate limiting helper
class RateLimiter:
    """Redis-based fixed window rate limiter."""

    def __init__(self, redis_client: redis.Redis):
        """Initialize rate limiter with Redis client."""
        self.redis = redis_client

    def check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int = 60,
    ) -> bool:
        """
        Check if rate limit is exceeded.

        Args:
            key: Rate limit key (e.g., user_id or IP)
            limit: Maximum number of requests
            window: Time window in seconds

        Returns:
            True if within limit, False if exceeded
        """
        try:
            current = cast(str | None, self.redis.get(key))

            if current is None:
                # First request
                self.redis.setex(key, window, 1)
                return True

            current_count = int(current)

            if current_count >= limit:
                return False

            # Increment counter
            self.redis.incr(key)
            return True
        except Exception:
            # On error, allow request (fail open)
            return True


class LoginAttemptTracker:
    """Counts failed logins per identifier and locks the identifier out."""

    def __init__(
        self,
        redis_client: redis.Redis,
        max_attempts: int,
        window: int,
        lockout: int,
    ):
        """Initialize tracker with Redis client and lockout policy."""
        self.redis = redis_client
        self.max_attempts = max_attempts
        self.window = window
        self.lockout = lockout

    @staticmethod
    def _attempts_key(identifier: str) -> str:
        return f"login_attempts:{fingerprint_identifier(identifier)}"

    @staticmethod
    def _lockout_key(identifier: str) -> str:
        return f"login_lockout:{fingerprint_identifier(identifier)}"

    def is_locked(self, identifier: str) -> bool:
        """Check whether the identifier is currently locked out."""
        try:
            return bool(self.redis.exists(self._lockout_key(identifier)))
        except Exception:
            return False

    def record_failure(self, identifier: str) -> int:
        """
        Record a failed attempt.

        Args:
            identifier: Email or phone used for the attempt

        Returns:
            Number of failures in the current window (0 if Redis is unavailable)
        """
        key = self._attempts_key(identifier)
        try:
            count = int(cast(int, self.redis.incr(key)))
            if count == 1:
                self.redis.expire(key, self.window)

            if count >= self.max_attempts:
                self.redis.setex(self._lockout_key(identifier), self.lockout, 1)
                self.redis.delete(key)

            return count
        except Exception:
            return 0

    def reset(self, identifier: str) -> None:
        """Clear failed attempts after a successful login."""
        try:
            self.redis.delete(self._attempts_key(identifier))
        except Exception:
            pass


# Cache helpers
class CacheManager:
    """Redis-based cache manager."""

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    def get(self, key: str) -> str | None:
        """Get value from cache."""
        try:
            return cast(str | None, self.redis.get(key))
        except Exception:
            return None

    def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
    ) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        try:
            if ttl:
                self.redis.setex(key, ttl, value)
            else:
                self.redis.set(key, value)
            return True
        except Exception:
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        try:
            self.redis.delete(key)
            return True
        except Exception:
            return False

    def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        try:
            return bool(self.redis.exists(key))
        except Exception:
            return False
