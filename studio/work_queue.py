"""
FIFO work queue of storyboard generation jobs (shared-key path only).

Jobs are ordered by ``queued_at`` with the auto-increment id as a
tie-breaker. A retried job keeps its original ``queued_at``, so it goes back
to the head of the line. Queue position is computed at query time.
"""
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from .models import QueueJob
from .updates import QueueJobUpdate

logger = logging.getLogger(__name__)

FIFO_ORDER = ("queued_at", "id")


@dataclass
class QueueJobStatus:
    job: QueueJob
    position: Optional[int] = None


@dataclass
class QueueStats:
    total_queued: int
    total_processing: int
    total_completed: int
    total_failed: int
    estimated_wait_minutes: int


def enqueue(storyboard_id, user_id: str) -> int:
    job = QueueJob.objects.create(
        storyboard_id=storyboard_id,
        user_id=user_id,
        status=QueueJob.STATUS_QUEUED,
        queued_at=timezone.now(),
        retry_count=0,
    )
    logger.info(f"➡️  Queued storyboard {storyboard_id} as job {job.pk}")
    return job.pk


def dequeue_next() -> Optional[QueueJob]:
    """Oldest queued job, or None. The caller must claim it before working on it."""
    return QueueJob.objects.filter(status=QueueJob.STATUS_QUEUED).order_by(*FIFO_ORDER).first()


def claim(job: QueueJob) -> bool:
    """
    Move ``job`` from queued to processing with compare-and-swap semantics.

    Returns False when another worker got there first; ``job`` is refreshed
    in place on success.
    """
    now = timezone.now()
    claimed = QueueJob.objects.filter(
        pk=job.pk, status=QueueJob.STATUS_QUEUED
    ).update(status=QueueJob.STATUS_PROCESSING, started_at=now)
    if claimed:
        job.status = QueueJob.STATUS_PROCESSING
        job.started_at = now
    return bool(claimed)


def set_status(job_id: int, status: str, error=None, started_at=None, completed_at=None):
    job = QueueJob.objects.get(pk=job_id)
    QueueJobUpdate(status=status, error=error, started_at=started_at,
                   completed_at=completed_at).apply(job)
    return job


@transaction.atomic
def increment_retry(job_id: int):
    updated = QueueJob.objects.filter(pk=job_id).update(
        retry_count=F("retry_count") + 1,
        status=QueueJob.STATUS_QUEUED,
    )
    if not updated:
        logger.warning(f"⏩ Queue job {job_id} vanished before retry")
        return None
    return QueueJob.objects.get(pk=job_id)


def get_status_for(storyboard_id) -> Optional[QueueJobStatus]:
    job = QueueJob.objects.filter(storyboard_id=storyboard_id).order_by("-queued_at", "-id").first()
    if job is None:
        return None

    position = None
    if job.status == QueueJob.STATUS_QUEUED:
        ahead = QueueJob.objects.filter(status=QueueJob.STATUS_QUEUED).filter(
            Q(queued_at__lt=job.queued_at) | Q(queued_at=job.queued_at, id__lt=job.pk)
        ).count()
        position = ahead + 1
    return QueueJobStatus(job=job, position=position)


def get_stats() -> QueueStats:
    counts = QueueJob.objects.aggregate(
        queued=Count("id", filter=Q(status=QueueJob.STATUS_QUEUED)),
        processing=Count("id", filter=Q(status=QueueJob.STATUS_PROCESSING)),
        completed=Count("id", filter=Q(status=QueueJob.STATUS_COMPLETED)),
        failed=Count("id", filter=Q(status=QueueJob.STATUS_FAILED)),
    )
    return QueueStats(
        total_queued=counts["queued"],
        total_processing=counts["processing"],
        total_completed=counts["completed"],
        total_failed=counts["failed"],
        estimated_wait_minutes=math.ceil(counts["queued"] * settings.SECONDS_PER_JOB / 60),
    )


def find_stale(max_age_seconds: int):
    """Jobs stuck in processing longer than the lease, e.g. after a worker crash."""
    cutoff = timezone.now() - timedelta(seconds=max_age_seconds)
    return list(
        QueueJob.objects.filter(status=QueueJob.STATUS_PROCESSING, started_at__lt=cutoff)
        .order_by(*FIFO_ORDER)
    )


def discard_queued(storyboard_id) -> int:
    deleted, _ = QueueJob.objects.filter(
        storyboard_id=storyboard_id, status=QueueJob.STATUS_QUEUED
    ).delete()
    return deleted


def cleanup(older_than_hours=None) -> int:
    if older_than_hours is None:
        older_than_hours = settings.QUEUE_RETENTION_HOURS
    cutoff = timezone.now() - timedelta(hours=older_than_hours)
    deleted, _ = QueueJob.objects.filter(
        status__in=QueueJob.TERMINAL_STATUSES, queued_at__lt=cutoff
    ).delete()
    if deleted:
        logger.info(f"🧹 Removed {deleted} finished queue jobs older than {older_than_hours}h")
    return deleted
