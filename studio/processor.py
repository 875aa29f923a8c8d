"""
Storyboard processor: turns pending scenes into images, one scene at a time.

Two entry points:

* ``process_next`` is run by the periodic trigger. It takes the oldest queued
  job, works through its scenes under the shared rate limit and retries the
  whole job (all scenes back to pending) up to ``MAX_RETRIES`` times.
* ``process_with_user_key`` is run at submission time for BYOK users. It
  never touches the queue, uses the user's own rate limit and always ends in
  a terminal status: running out of quota gives ``partial``/``failed``, an
  upstream error gives ``failed``. There is no retry.
"""
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.utils import timezone

from . import api_keys, storyboards, work_queue
from .blob_store import DjangoBlobStore
from .completion import check_completion, final_status
from .exceptions import ApiKeyError, GenerationError, RateLimitExceeded
from .generation import build_mega_prompt, gemini_service_factory
from .models import QueueJob, Scene, Storyboard
from .rate_limiter import SHARED_SOURCE_KEY, shared_rate_limiter, user_rate_limiter, user_source_key
from .updates import QueueJobUpdate, SceneUpdate, StoryboardUpdate
from .utils import log_conditionally

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    storyboard_id: str
    status: str
    completed_scenes: int
    total_scenes: int
    total_cost: Decimal
    rate_limit_exceeded: bool = False


class StoryboardProcessor:
    def __init__(self, shared_limiter, user_limiter, blob_store, service_factory,
                 shared_api_key=None, sleep=time.sleep, max_retries=None,
                 scene_delay=None, rate_limit_backoff=None, text_cost=None, image_cost=None):
        self.shared_limiter     = shared_limiter
        self.user_limiter       = user_limiter
        self.blob_store         = blob_store
        self.service_factory    = service_factory
        self.shared_api_key     = shared_api_key
        self.sleep              = sleep
        self.max_retries        = settings.MAX_RETRIES if max_retries is None else max_retries
        self.scene_delay        = settings.SCENE_DELAY_S if scene_delay is None else scene_delay
        self.rate_limit_backoff = settings.RATE_LIMIT_BACKOFF_S if rate_limit_backoff is None else rate_limit_backoff
        self.text_cost          = settings.TEXT_COST if text_cost is None else text_cost
        self.image_cost         = settings.IMAGE_COST if image_cost is None else image_cost

    # --- shared-key path ---

    def process_next(self) -> Optional[QueueJob]:
        """Process the oldest queued job. Returns it in its new state, or None."""
        job = work_queue.dequeue_next()
        if job is None:
            log_conditionally(logging.INFO, "💤 No storyboards in queue - waiting for next trigger", logger=logger)
            return None

        if not work_queue.claim(job):
            logger.warning(f"⏩ Job {job.pk} was claimed by another worker")
            return None

        logger.info(f"🧵 Processing storyboard {job.storyboard_id} for user {job.user_id} "
                    f"(job {job.pk}, retry {job.retry_count})")
        try:
            self._run_shared_job(job)
        except Exception as e:
            logger.exception(f"❌ Job {job.pk} failed: {e}")
            self._handle_job_failure(job, str(e))

        job.refresh_from_db()
        return job

    def _run_shared_job(self, job):
        storyboard = storyboards.get_storyboard(job.storyboard_id)
        scenes = storyboards.get_scenes(storyboard.pk)
        service = self.service_factory(self.shared_api_key)

        logger.info(f"🎬 {len(scenes)} scenes to render for '{storyboard.title}'")
        for index, scene in enumerate(scenes, start=1):
            self._admit_shared()
            self._render_scene(service, storyboard, scene, self.shared_limiter, SHARED_SOURCE_KEY)
            if index < len(scenes):
                self.sleep(self.scene_delay)

        summary = check_completion(storyboard.pk, text_cost=self.text_cost)
        QueueJobUpdate(status=QueueJob.STATUS_COMPLETED, completed_at=timezone.now()).apply(job)
        logger.info(f"✅ Storyboard '{storyboard.title}' {summary.status}. Total cost: ${summary.total_cost:.3f}")

    def _admit_shared(self):
        if self.shared_limiter.can_process(SHARED_SOURCE_KEY):
            return
        log_conditionally(logging.INFO, f"⏳ Rate limit reached, waiting {self.rate_limit_backoff}s", logger=logger)
        self.sleep(self.rate_limit_backoff)
        if not self.shared_limiter.can_process(SHARED_SOURCE_KEY):
            raise RateLimitExceeded("Rate limit still exceeded after waiting")

    def _handle_job_failure(self, job, error_message):
        if job.retry_count < self.max_retries:
            logger.warning(f"🔁 Retrying storyboard {job.storyboard_id} "
                           f"(attempt {job.retry_count + 1}/{self.max_retries})")
            work_queue.increment_retry(job.pk)
            QueueJobUpdate(error=error_message).apply(job)

            storyboard = Storyboard.objects.filter(pk=job.storyboard_id).first()
            if storyboard is not None:
                storyboards.update_storyboard(storyboard, StoryboardUpdate(
                    status=Storyboard.STATUS_GENERATING,
                    completed_scenes=0,
                ))
                storyboards.reset_scenes(storyboard.pk)
            return

        logger.error(f"❌ Max retries reached for storyboard {job.storyboard_id}, marking as failed")
        QueueJobUpdate(
            status=QueueJob.STATUS_FAILED,
            error=error_message,
            completed_at=timezone.now(),
        ).apply(job)
        self._mark_storyboard_failed(job.storyboard_id)

    def recover_stale_jobs(self, max_age_seconds=None) -> int:
        """Send jobs whose processing lease expired back through the failure policy."""
        if max_age_seconds is None:
            max_age_seconds = settings.PROCESSING_TIMEOUT_S
        stale = work_queue.find_stale(max_age_seconds)
        for job in stale:
            logger.warning(f"⚠️ Job {job.pk} exceeded its {max_age_seconds}s processing lease")
            self._handle_job_failure(job, "Processing lease expired")
        return len(stale)

    # --- BYOK path ---

    def process_with_user_key(self, storyboard_id, user_id) -> ProcessingResult:
        source_key = user_source_key(user_id)
        in_flight = None
        logger.info(f"🔑 Processing storyboard {storyboard_id} with user {user_id}'s API key (BYOK)")

        try:
            api_key = api_keys.get_user_api_key(user_id)
            if not api_key:
                raise ApiKeyError("User API key not found - BYOK should be disabled")

            storyboard = storyboards.get_storyboard(storyboard_id)
            scenes = storyboards.get_scenes(storyboard.pk)
            service = self.service_factory(api_key)

            completed = 0
            rate_limit_exceeded = False
            for index, scene in enumerate(scenes, start=1):
                if not self.user_limiter.can_process(source_key):
                    logger.warning(f"⏳ User {user_id} rate limit reached - cannot process more scenes")
                    rate_limit_exceeded = True
                    break

                in_flight = scene
                self._render_scene(service, storyboard, scene, self.user_limiter, source_key)
                in_flight = None
                completed += 1

                if index < len(scenes):
                    self.sleep(self.scene_delay)
        except Exception as e:
            logger.exception(f"❌ BYOK processing failed for storyboard {storyboard_id}: {e}")
            if in_flight is not None:
                Scene.objects.filter(pk=in_flight.pk).update(status=Scene.STATUS_FAILED)
            self._mark_storyboard_failed(storyboard_id)
            raise

        status = final_status(completed, len(scenes))
        images_cost = self.image_cost * completed
        total_cost = self.text_cost + images_cost
        storyboards.update_storyboard(storyboard, StoryboardUpdate(
            status=status,
            completed_scenes=completed,
            estimated_cost=total_cost,
            actual_cost=total_cost,
            text_cost=self.text_cost,
            images_cost=images_cost,
        ))

        if rate_limit_exceeded:
            logger.warning(f"⚠️ User {user_id} hit their rate limit - storyboard marked as {status} "
                           f"({completed}/{len(scenes)} scenes)")
        logger.info(f"✅ BYOK storyboard '{storyboard.title}' {status}. Total cost: ${total_cost:.3f}")

        return ProcessingResult(
            storyboard_id=str(storyboard.pk),
            status=status,
            completed_scenes=completed,
            total_scenes=len(scenes),
            total_cost=total_cost,
            rate_limit_exceeded=rate_limit_exceeded,
        )

    # --- shared helpers ---

    def _render_scene(self, service, storyboard, scene, limiter, source_key):
        storyboards.update_scene(scene, SceneUpdate(status=Scene.STATUS_GENERATING))
        limiter.increment(source_key)

        prompt = build_mega_prompt(storyboard.story_anchor_content, scene.action)
        log_conditionally(logging.INFO, f"🖼️  Generating scene {scene.scene_number} "
                                        f"(prompt length: {len(prompt)})", logger=logger)
        try:
            result = service.generate(prompt)
        except GenerationError as e:
            raise GenerationError(f"Image generation API failed for scene {scene.scene_number}: {e}") from e

        if result.image is None:
            raise GenerationError(
                f"No image data received for scene {scene.scene_number}. "
                f"API response did not contain inline image data."
            )

        previous_ref = scene.image_ref
        image_ref = self.blob_store.store(result.image.data, result.image.mime_type)
        try:
            storyboards.update_scene(scene, SceneUpdate(
                image_ref=image_ref,
                content_type=result.image.mime_type,
                image_prompt=prompt,
                cost=self.image_cost,
                status=Scene.STATUS_COMPLETED,
            ))
        except Exception:
            # the scene row may be gone (storyboard deleted mid-generation)
            logger.warning(f"⚠️ Could not save scene {scene.scene_number}, discarding image {image_ref}")
            self.blob_store.delete(image_ref)
            raise
        if previous_ref and previous_ref != image_ref:
            self.blob_store.delete(previous_ref)

        log_conditionally(logging.INFO, f"✅ Scene {scene.scene_number} completed", logger=logger)

    def _mark_storyboard_failed(self, storyboard_id):
        storyboard = Storyboard.objects.filter(pk=storyboard_id).first()
        if storyboard is not None:
            storyboards.update_storyboard(storyboard, StoryboardUpdate(status=Storyboard.STATUS_FAILED))


def get_processor(**overrides) -> StoryboardProcessor:
    options = dict(
        shared_limiter=shared_rate_limiter(),
        user_limiter=user_rate_limiter(),
        blob_store=DjangoBlobStore(),
        service_factory=gemini_service_factory,
        shared_api_key=settings.GEMINI_API_KEY,
    )
    options.update(overrides)
    return StoryboardProcessor(**options)
