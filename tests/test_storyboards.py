import uuid
from datetime import timedelta

import pytest
from django.core.files.storage import FileSystemStorage

from studio import storyboards, work_queue
from studio.blob_store import DjangoBlobStore
from studio.exceptions import StoryboardNotFound, StoryboardPermissionDenied
from studio.models import QueueJob, Scene, Storyboard
from studio.updates import SceneUpdate, StoryboardUpdate

pytestmark = pytest.mark.django_db


@pytest.fixture
def file_blob_store(tmp_path):
    return DjangoBlobStore(storage=FileSystemStorage(location=tmp_path, base_url="/media/"))


def test_create_storyboard_with_pending_scenes(make_storyboard):
    storyboard = make_storyboard(scene_count=3)

    assert storyboard.status == Storyboard.STATUS_GENERATING
    assert storyboard.total_scenes == 3
    assert storyboard.completed_scenes == 0
    scenes = storyboards.get_scenes(storyboard.pk)
    assert [s.scene_number for s in scenes] == [1, 2, 3]
    assert all(s.status == Scene.STATUS_PENDING for s in scenes)


def test_get_storyboard_unknown_or_malformed_id():
    with pytest.raises(StoryboardNotFound):
        storyboards.get_storyboard(uuid.uuid4())
    with pytest.raises(StoryboardNotFound):
        storyboards.get_storyboard("not-a-uuid")


def test_list_user_storyboards_newest_first(make_storyboard):
    older = make_storyboard(title="Older")
    newer = make_storyboard(title="Newer")
    make_storyboard(user_id="someone_else")
    Storyboard.objects.filter(pk=older.pk).update(created_at=newer.created_at - timedelta(minutes=5))

    assert [s.pk for s in storyboards.list_user_storyboards("user_1")] == [newer.pk, older.pk]


def test_updates_only_write_given_fields(make_storyboard):
    storyboard = make_storyboard(scene_count=1)
    scene = storyboards.get_scenes(storyboard.pk)[0]

    changed = StoryboardUpdate(completed_scenes=1).apply(storyboard)
    storyboards.update_scene(scene, SceneUpdate(status=Scene.STATUS_GENERATING))

    assert changed == ["completed_scenes"]
    storyboard.refresh_from_db()
    scene.refresh_from_db()
    assert storyboard.completed_scenes == 1
    assert storyboard.status == Storyboard.STATUS_GENERATING
    assert scene.status == Scene.STATUS_GENERATING
    assert scene.image_ref is None


def test_reset_scenes(make_storyboard):
    storyboard = make_storyboard(scene_count=2)
    Scene.objects.filter(storyboard=storyboard).update(status=Scene.STATUS_COMPLETED)

    assert storyboards.reset_scenes(storyboard.pk) == 2
    assert {s.status for s in storyboards.get_scenes(storyboard.pk)} == {Scene.STATUS_PENDING}


def test_delete_cascades_to_scenes_images_and_queued_job(make_storyboard, file_blob_store):
    storyboard = make_storyboard(scene_count=2)
    refs = []
    for scene in storyboards.get_scenes(storyboard.pk):
        ref = file_blob_store.store(b"png-bytes", "image/png")
        storyboards.update_scene(scene, SceneUpdate(image_ref=ref))
        refs.append(ref)
    work_queue.enqueue(storyboard.pk, storyboard.user_id)

    storyboards.delete_storyboard(storyboard.pk, "user_1", file_blob_store)

    assert not Storyboard.objects.filter(pk=storyboard.pk).exists()
    assert not Scene.objects.filter(storyboard_id=storyboard.pk).exists()
    assert not QueueJob.objects.filter(storyboard_id=storyboard.pk).exists()
    assert all(file_blob_store.get_url(ref) is None for ref in refs)


def test_delete_by_other_user_is_refused(make_storyboard, blob_store):
    storyboard = make_storyboard()

    with pytest.raises(StoryboardPermissionDenied):
        storyboards.delete_storyboard(storyboard.pk, "intruder", blob_store)

    assert Storyboard.objects.filter(pk=storyboard.pk).exists()


def test_delete_unknown_storyboard(blob_store):
    with pytest.raises(StoryboardNotFound):
        storyboards.delete_storyboard(uuid.uuid4(), "user_1", blob_store)


def test_blob_store_round_trip(file_blob_store):
    ref = file_blob_store.store(b"\x89PNG", "image/png")

    assert ref.startswith("scenes/") and ref.endswith(".png")
    assert file_blob_store.get_url(ref) == f"/media/{ref}"
    file_blob_store.delete(ref)
    assert file_blob_store.get_url(ref) is None
    assert file_blob_store.get_url(None) is None
