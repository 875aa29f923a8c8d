"""
Shared fixtures for the storyboard studio tests.

External collaborators (Gemini, blob storage, wall clock, sleeps) are
replaced with in-process fakes so processing runs instantly and
deterministically.
"""
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest

from studio.exceptions import GenerationError
from studio.generation import GenerationResult, InlineImage
from studio.local_rate_limiter import InMemoryRateWindowStore
from studio.processor import StoryboardProcessor
from studio.rate_limiter import RateLimiter
from studio.storyboards import create_storyboard

TEXT_COST = Decimal("0.025")
IMAGE_COST = Decimal("0.039")
BYOK_KEY = "AIza" + "x" * 35


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeBlobStore:
    def __init__(self):
        self.blobs = {}
        self.deleted = []
        self._next = 0

    def store(self, data, content_type):
        self._next += 1
        ref = f"blob-{self._next}"
        self.blobs[ref] = (data, content_type)
        return ref

    def delete(self, blob_ref):
        self.deleted.append(blob_ref)
        self.blobs.pop(blob_ref, None)

    def get_url(self, blob_ref):
        return f"/media/{blob_ref}" if blob_ref in self.blobs else None


class FakeImageService:
    """
    Scripted stand-in for the Gemini image model.

    ``fail_on`` / ``no_image_on`` hold 1-based call numbers across the whole
    test; ``fail_always`` makes every call fail.
    """

    def __init__(self):
        self.prompts = []
        self.api_keys = []
        self.fail_on = set()
        self.no_image_on = set()
        self.fail_always = False

    def factory(self, api_key):
        self.api_keys.append(api_key)
        return self

    def generate(self, prompt):
        self.prompts.append(prompt)
        call = len(self.prompts)
        if self.fail_always or call in self.fail_on:
            raise GenerationError("upstream unavailable")
        if call in self.no_image_on:
            return GenerationResult(text="Sorry, I can only describe this scene.")
        return GenerationResult(image=InlineImage(data=b"\x89PNG-fake", mime_type="image/png"))


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 1, 12, 0, 5, tzinfo=dt_timezone.utc))


@pytest.fixture
def sleeps(clock):
    """Records requested sleeps and moves the fake clock forward instead."""
    calls = []

    def sleep(seconds):
        calls.append(seconds)
        clock.advance(seconds=seconds)

    sleep.calls = calls
    return sleep


@pytest.fixture
def shared_limiter(clock):
    return RateLimiter(InMemoryRateWindowStore(), limit=10, clock=clock)


@pytest.fixture
def user_limiter(clock):
    return RateLimiter(InMemoryRateWindowStore(), limit=10, clock=clock)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def image_service():
    return FakeImageService()


@pytest.fixture
def processor(shared_limiter, user_limiter, blob_store, image_service, sleeps):
    return StoryboardProcessor(
        shared_limiter=shared_limiter,
        user_limiter=user_limiter,
        blob_store=blob_store,
        service_factory=image_service.factory,
        shared_api_key="shared-gemini-key",
        sleep=sleeps,
        max_retries=3,
        scene_delay=6,
        rate_limit_backoff=6,
        text_cost=TEXT_COST,
        image_cost=IMAGE_COST,
    )


@pytest.fixture
def make_storyboard():
    def _make(user_id="user_1", scene_count=4, title="The Lighthouse Keeper"):
        return create_storyboard(
            user_id=user_id,
            title=title,
            logline="A keeper guards a light nobody needs anymore.",
            original_prompt="A lonely lighthouse keeper on a stormy night",
            story_anchor_content="--SCENE CONTENT--\nAn old keeper in a yellow coat, a cliff-top lighthouse.",
            scenes=[
                {
                    "scene_number": n,
                    "description": f"Beat {n}",
                    "action": f"--SCENE ACTION--\nWide shot, beat {n}.",
                }
                for n in range(1, scene_count + 1)
            ],
        )
    return _make
