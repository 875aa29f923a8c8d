from rest_framework import serializers

from .blob_store import DjangoBlobStore
from .models import QueueJob, Scene, Storyboard


class SceneSerializer(serializers.ModelSerializer):
    image_url = serializers.SerializerMethodField()

    class Meta:
        model = Scene
        fields = ["id", "scene_number", "description", "action", "image_prompt",
                  "content_type", "status", "cost", "image_url"]

    def get_image_url(self, scene):
        blob_store = self.context.get("blob_store") or DjangoBlobStore()
        return blob_store.get_url(scene.image_ref)


class StoryboardSerializer(serializers.ModelSerializer):
    class Meta:
        model = Storyboard
        fields = ["id", "user_id", "title", "logline", "original_prompt", "story_anchor_content",
                  "status", "total_scenes", "completed_scenes", "estimated_cost", "actual_cost",
                  "text_cost", "images_cost", "created_at"]


class StoryboardDetailSerializer(StoryboardSerializer):
    scenes = SceneSerializer(many=True, read_only=True)

    class Meta(StoryboardSerializer.Meta):
        fields = StoryboardSerializer.Meta.fields + ["scenes"]


class QueueJobSerializer(serializers.ModelSerializer):
    class Meta:
        model = QueueJob
        fields = ["id", "storyboard_id", "user_id", "status", "queued_at", "started_at",
                  "completed_at", "retry_count", "error"]
