from django.contrib import admin

from .models import QueueJob, RateWindow, Scene, Storyboard, UserApiKey


class SceneInline(admin.TabularInline):
    model = Scene
    extra = 0
    fields = ("scene_number", "status", "description", "cost", "image_ref")
    readonly_fields = ("image_ref",)


@admin.register(Storyboard)
class StoryboardAdmin(admin.ModelAdmin):
    list_display = ("title", "user_id", "status", "completed_scenes", "total_scenes", "actual_cost", "created_at")
    list_filter = ("status",)
    inlines = [SceneInline]


@admin.register(QueueJob)
class QueueJobAdmin(admin.ModelAdmin):
    list_display = ("id", "storyboard_id", "user_id", "status", "retry_count", "queued_at", "completed_at")
    list_filter = ("status",)


@admin.register(RateWindow)
class RateWindowAdmin(admin.ModelAdmin):
    list_display = ("source_key", "window_start", "request_count", "last_updated")


@admin.register(UserApiKey)
class UserApiKeyAdmin(admin.ModelAdmin):
    list_display = ("user_id", "has_api_key", "byok_enabled", "api_key_updated_at")
    exclude = ("encrypted_api_key",)
