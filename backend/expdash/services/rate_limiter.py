"""Request budget for live feed consumers, tracked in Redis."""
import redis
from datetime import datetime
from typing import Tuple


class RateLimiter:
    """Redis-based fixed window rate limiter."""

    def __init__(self, redis_client: redis.Redis, prefix: str = "feed_rate_limit"):
        self.redis = redis_client
        self.prefix = prefix

    def check_rate_limit(
        self,
        consumer: str,
        limit: int = 600,
        window: int = 3600
    ) -> Tuple[bool, int]:
        """
        Count one request for `consumer` and report whether it is allowed.

        Fixed window: the counter resets every `window` seconds and allows
        up to `limit` requests per window.

        Args:
            consumer: Identifier of the calling system
            limit: Maximum requests allowed per window
            window: Time window in seconds

        Returns:
            Tuple of (allowed: bool, current_count: int)
        """
        window_key = self._get_window_key(consumer, window)

        current = self.redis.get(window_key)
        if current and int(current) >= limit:
            return False, int(current)

        # Increment and set expiry in one round trip
        pipe = self.redis.pipeline()
        pipe.incr(window_key)
        pipe.expire(window_key, window)
        results = pipe.execute()

        new_count = results[0]
        return new_count <= limit, new_count

    def get_remaining(self, consumer: str, limit: int = 600, window: int = 3600) -> int:
        """Requests left in the current window."""
        current = self.redis.get(self._get_window_key(consumer, window))
        used = int(current) if current else 0
        return max(0, limit - used)

    def _get_window_key(self, consumer: str, window: int) -> str:
        window_id = int(datetime.utcnow().timestamp()) // window
        return f"{self.prefix}:{consumer}:{window_id}"
