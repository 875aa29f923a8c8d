"""
Partial updates for the persisted entities.

Each struct lists the fields a caller may change; only the fields that are
set (not None) are written, and the save touches only those columns.
"""
from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


def _apply(update, instance) -> List[str]:
    changed = []
    for f in fields(update):
        value = getattr(update, f.name)
        if value is None:
            continue
        setattr(instance, f.name, value)
        changed.append(f.name)
    if changed:
        instance.save(update_fields=changed)
    return changed


@dataclass
class QueueJobUpdate:
    status: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def apply(self, job) -> List[str]:
        return _apply(self, job)


@dataclass
class StoryboardUpdate:
    status: Optional[str] = None
    completed_scenes: Optional[int] = None
    estimated_cost: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None
    text_cost: Optional[Decimal] = None
    images_cost: Optional[Decimal] = None

    def apply(self, storyboard) -> List[str]:
        return _apply(self, storyboard)


@dataclass
class SceneUpdate:
    status: Optional[str] = None
    image_prompt: Optional[str] = None
    image_ref: Optional[str] = None
    content_type: Optional[str] = None
    cost: Optional[Decimal] = None

    def apply(self, scene) -> List[str]:
        return _apply(self, scene)
