# backend/reservations/redis_client.py

from redis import Redis

from .config import settings


def create_redis_client(url: str | None = None) -> Redis | None:
    """Build a client from REDIS_URL; None when Redis is not configured."""
    url = url or settings.redis_url
    if not url:
        return None
    return Redis.from_url(url, decode_responses=True)


redis_client = create_redis_client()
