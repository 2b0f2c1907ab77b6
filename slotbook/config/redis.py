"""Redis connectivity checks for the cache and the Celery broker"""
import logging
from typing import Dict

import redis.asyncio as redis
from redis.exceptions import RedisError

from slotbook.config.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

PING_TIMEOUT_SECONDS = 2


async def ping(url: str) -> str:
    """'healthy' or 'unhealthy: <reason>' for one Redis URL"""
    client = redis.Redis.from_url(
        url,
        socket_connect_timeout=PING_TIMEOUT_SECONDS,
        socket_timeout=PING_TIMEOUT_SECONDS,
    )
    try:
        await client.ping()
        return "healthy"
    except (RedisError, OSError) as e:
        logger.warning(f"Redis ping failed: {e}")
        return f"unhealthy: {e}"
    finally:
        await client.aclose()


async def check_redis_targets() -> Dict[str, str]:
    """Ping the cache and, when it lives elsewhere, the notification broker"""
    targets = {"redis": settings.REDIS_URL}
    if settings.CELERY_BROKER_URL.startswith("redis") and settings.CELERY_BROKER_URL != settings.REDIS_URL:
        targets["broker"] = settings.CELERY_BROKER_URL
    return {name: await ping(url) for name, url in targets.items()}
