# redis_client.py
import os
import redis
from django.conf import settings

REDIS_MAX_CONNECTIONS = int(os.getenv("REDIS_MAX_CONNECTIONS", 10))
QUEUE_LOCK_NAME = "storyboard_queue_processing_lock"

_pool = None


def get_redis_client():
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(
            settings.CELERY_BROKER_URL,
            max_connections=REDIS_MAX_CONNECTIONS,
            decode_responses=False
        )
    return redis.Redis(connection_pool=_pool)


def queue_processing_lock(client=None):
    """Expiring lock that keeps queue processing single-flight across workers."""
    client = client or get_redis_client()
    return client.lock(QUEUE_LOCK_NAME, timeout=settings.PROCESSING_TIMEOUT_S)
