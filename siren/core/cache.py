import logging
from typing import Optional

import redis
from redis.exceptions import RedisError

from siren.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _client
    if _client is None:
        _client = redis.from_url(settings.redis_url, decode_responses=True)
    return _client


def claim_once(key: str, ttl_seconds: int) -> bool:
    """Claim ``key`` for ``ttl_seconds``.

    Returns False only when another caller already holds the claim. Redis
    outages fail open so that a cache problem never suppresses work.
    """
    r = get_redis()
    try:
        return bool(r.set(key, "1", nx=True, ex=ttl_seconds))
    except RedisError as exc:
        logger.warning("Redis claim failed for %s, continuing without it: %s", key, exc)
        return True
