import logging
from typing import List

from django.core.exceptions import ValidationError
from django.db import transaction

from .exceptions import StoryboardNotFound, StoryboardPermissionDenied
from .models import Scene, Storyboard
from .updates import SceneUpdate, StoryboardUpdate
from . import work_queue

logger = logging.getLogger(__name__)


@transaction.atomic
def create_storyboard(user_id, title, original_prompt, scenes, logline="",
                      story_anchor_content="", estimated_cost=None) -> Storyboard:
    """
    Create a ``generating`` storyboard with one pending scene per entry.

    ``scenes`` is a list of dicts with ``scene_number``, ``description`` and
    ``action``.
    """
    storyboard = Storyboard.objects.create(
        user_id=user_id,
        title=title,
        logline=logline,
        original_prompt=original_prompt,
        story_anchor_content=story_anchor_content,
        status=Storyboard.STATUS_GENERATING,
        total_scenes=len(scenes),
        completed_scenes=0,
        estimated_cost=estimated_cost,
    )
    Scene.objects.bulk_create([
        Scene(
            storyboard=storyboard,
            scene_number=s["scene_number"],
            description=s.get("description", ""),
            action=s.get("action", ""),
            status=Scene.STATUS_PENDING,
        )
        for s in scenes
    ])
    return storyboard


def get_storyboard(storyboard_id) -> Storyboard:
    try:
        return Storyboard.objects.get(pk=storyboard_id)
    except (Storyboard.DoesNotExist, ValidationError):
        raise StoryboardNotFound(f"Storyboard {storyboard_id} not found")


def list_user_storyboards(user_id) -> List[Storyboard]:
    return list(Storyboard.objects.filter(user_id=user_id).order_by("-created_at"))


def get_scenes(storyboard_id) -> List[Scene]:
    return list(Scene.objects.filter(storyboard_id=storyboard_id).order_by("scene_number"))


def update_storyboard(storyboard, update: StoryboardUpdate):
    update.apply(storyboard)
    return storyboard


def update_scene(scene, update: SceneUpdate):
    update.apply(scene)
    return scene


def reset_scenes(storyboard_id) -> int:
    return Scene.objects.filter(storyboard_id=storyboard_id).update(status=Scene.STATUS_PENDING)


def delete_storyboard(storyboard_id, user_id, blob_store):
    """Delete a storyboard, its scenes, their images and any job still waiting for it."""
    storyboard = get_storyboard(storyboard_id)
    if storyboard.user_id != user_id:
        raise StoryboardPermissionDenied("Unauthorized: Cannot delete storyboard")

    image_refs = list(
        Scene.objects.filter(storyboard=storyboard, image_ref__isnull=False)
        .values_list("image_ref", flat=True)
    )
    with transaction.atomic():
        discarded = work_queue.discard_queued(storyboard.pk)
        storyboard.delete()

    for ref in image_refs:
        blob_store.delete(ref)

    logger.info(f"🗑️  Deleted storyboard {storyboard_id} ({len(image_refs)} images, {discarded} queued jobs)")
