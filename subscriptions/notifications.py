from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import RLock
from typing import Optional

import redis

from .config import NOTIFICATION_TTL_SECONDS
from .models import utc_now

logger = logging.getLogger(__name__)

NEW_SUBSCRIPTION_KEY = "subscriptions:notice:new_subscription"


@dataclass(frozen=True)
class _Slot:
    present: bool = False
    expires_at: Optional[datetime] = None


class NotificationFlag:
    """Single-slot "new subscription" flag with a TTL.

    Redis-backed when a URL is available (SET NX EX / GETDEL), otherwise a
    process-local slot. Setting an already-set flag is a no-op; a consuming
    read clears it, so any number of grants inside the TTL window surface as
    one notice.

    Redis errors after startup are logged and re-raised; callers decide
    whether a lost notice matters.
    """

    def __init__(self, redis_url: Optional[str] = None, ttl_seconds: int = NOTIFICATION_TTL_SECONDS) -> None:
        self._ttl_seconds = ttl_seconds
        self._lock = RLock()
        self._slot = _Slot()
        self._redis = None
        redis_url = redis_url if redis_url is not None else os.getenv("REDIS_URL")

        if redis_url:
            try:
                self._redis = redis.from_url(redis_url, decode_responses=True)
                self._redis.ping()
            except redis.RedisError as e:
                logger.warning("Redis unavailable for notification flag: %s", e)
                self._redis = None

    def set_pending(self, now: Optional[datetime] = None) -> bool:
        """Raise the flag. Returns True only if it was not already pending."""
        if self._redis is not None:
            try:
                return bool(self._redis.set(NEW_SUBSCRIPTION_KEY, "1", nx=True, ex=self._ttl_seconds))
            except redis.RedisError as e:
                logger.warning("Failed to set notification flag: %s", e, extra={"key": NEW_SUBSCRIPTION_KEY})
                raise

        current = utc_now(now)
        with self._lock:
            if self._live(current):
                return False
            self._slot = _Slot(present=True, expires_at=current + timedelta(seconds=self._ttl_seconds))
            return True

    def consume_if_pending(self, now: Optional[datetime] = None) -> bool:
        if self._redis is not None:
            try:
                return self._redis.getdel(NEW_SUBSCRIPTION_KEY) is not None
            except redis.RedisError as e:
                logger.warning("Failed to consume notification flag: %s", e, extra={"key": NEW_SUBSCRIPTION_KEY})
                raise

        current = utc_now(now)
        with self._lock:
            pending = self._live(current)
            self._slot = _Slot()
            return pending

    def is_pending(self, now: Optional[datetime] = None) -> bool:
        if self._redis is not None:
            try:
                return bool(self._redis.exists(NEW_SUBSCRIPTION_KEY))
            except redis.RedisError as e:
                logger.warning("Failed to read notification flag: %s", e, extra={"key": NEW_SUBSCRIPTION_KEY})
                raise
        with self._lock:
            return self._live(utc_now(now))

    def _live(self, now: datetime) -> bool:
        return self._slot.present and self._slot.expires_at is not None and self._slot.expires_at > now
