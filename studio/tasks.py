import logging

from celery import shared_task
from redis.exceptions import LockError

from . import work_queue
from .processor import get_processor
from .rate_limiter import shared_rate_limiter
from .redis_client import queue_processing_lock
from .utils import log_conditionally

logger = logging.getLogger(__name__)


@shared_task
def process_storyboard_queue():
    """
    Periodic entry point: process at most one queued storyboard.

    Beat may fire again while a long job is still running, so the run is
    guarded by a non-blocking Redis lock; a second invocation is a no-op.
    """
    lock = queue_processing_lock()
    if not lock.acquire(blocking=False):
        log_conditionally(logging.INFO, "⏳ Queue processor already running - skipping this tick", logger=logger)
        return None

    log_conditionally(logging.INFO, "🔒 Queue processing lock acquired", logger=logger)
    try:
        processor = get_processor()
        processor.recover_stale_jobs()
        job = processor.process_next()
        return job.status if job else None
    finally:
        try:
            lock.release()
            log_conditionally(logging.INFO, "🔓 Queue processing lock released", logger=logger)
        except LockError:
            logger.warning("⚠️ Queue processing lock expired before release")


@shared_task
def cleanup_rate_windows():
    # Shared and per-user windows live in the same table
    return shared_rate_limiter().cleanup()


@shared_task
def cleanup_queue_jobs():
    return work_queue.cleanup()
