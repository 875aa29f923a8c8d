import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings

from .models import Scene, Storyboard
from .storyboards import get_scenes, get_storyboard, update_storyboard
from .updates import StoryboardUpdate

logger = logging.getLogger(__name__)


@dataclass
class CompletionSummary:
    total_scenes: int
    completed_scenes: int
    failed_scenes: int
    pending_scenes: int
    text_cost: Decimal
    images_cost: Decimal
    status: Optional[str] = None

    @property
    def finalized(self):
        return self.status is not None

    @property
    def total_cost(self):
        return self.text_cost + self.images_cost


def final_status(completed, total):
    if completed == total:
        return Storyboard.STATUS_COMPLETED
    return Storyboard.STATUS_PARTIAL if completed > 0 else Storyboard.STATUS_FAILED


def check_completion(storyboard_id, text_cost=None) -> CompletionSummary:
    """
    Recompute a storyboard's progress from its scene rows.

    The storyboard is only finalized once no scene is pending or generating.
    Nothing is carried over between calls, so calling this repeatedly on the
    same scene state always yields the same status and cost.
    """
    storyboard = get_storyboard(storyboard_id)
    scenes = get_scenes(storyboard.pk)
    text_cost = settings.TEXT_COST if text_cost is None else text_cost

    completed = [s for s in scenes if s.status == Scene.STATUS_COMPLETED]
    failed = sum(1 for s in scenes if s.status == Scene.STATUS_FAILED)
    pending = sum(1 for s in scenes if s.status in (Scene.STATUS_PENDING, Scene.STATUS_GENERATING))

    summary = CompletionSummary(
        total_scenes=len(scenes),
        completed_scenes=len(completed),
        failed_scenes=failed,
        pending_scenes=pending,
        text_cost=text_cost,
        images_cost=sum((s.cost or Decimal("0") for s in completed), Decimal("0")),
    )
    if pending:
        return summary

    summary.status = final_status(summary.completed_scenes, summary.total_scenes)
    update_storyboard(storyboard, StoryboardUpdate(
        status=summary.status,
        completed_scenes=summary.completed_scenes,
        estimated_cost=summary.total_cost,
        actual_cost=summary.total_cost,
        text_cost=summary.text_cost,
        images_cost=summary.images_cost,
    ))
    logger.info(f"🏁 Storyboard {storyboard_id} is {summary.status}. Cost: ${summary.total_cost:.3f}")
    return summary
