import uuid
from django.db import models


class Storyboard(models.Model):
    STATUS_GENERATING = "generating"
    STATUS_COMPLETED  = "completed"
    STATUS_FAILED     = "failed"
    STATUS_PARTIAL    = "partial"

    STATUS_CHOICES = [
        (STATUS_GENERATING, "Generating"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_PARTIAL, "Partial"),
    ]

    id                   = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id              = models.CharField(max_length=200, db_index=True)
    title                = models.CharField(max_length=300)
    logline              = models.TextField(blank=True, default="")
    original_prompt      = models.TextField()
    story_anchor_content = models.TextField(blank=True, default="")
    status               = models.CharField(max_length=20, choices=STATUS_CHOICES,
                                            default=STATUS_GENERATING, db_index=True)
    total_scenes         = models.PositiveIntegerField(default=0)
    completed_scenes     = models.PositiveIntegerField(default=0)
    estimated_cost       = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    actual_cost          = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    text_cost            = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    images_cost          = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    created_at           = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.title} ({self.status})"


class Scene(models.Model):
    STATUS_PENDING    = "pending"
    STATUS_GENERATING = "generating"
    STATUS_COMPLETED  = "completed"
    STATUS_FAILED     = "failed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_GENERATING, "Generating"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
    ]

    storyboard   = models.ForeignKey(Storyboard, on_delete=models.CASCADE, related_name="scenes")
    scene_number = models.PositiveIntegerField()
    description  = models.TextField(blank=True, default="")
    action       = models.TextField(blank=True, default="")
    image_prompt = models.TextField(null=True, blank=True)
    image_ref    = models.CharField(max_length=500, null=True, blank=True)
    content_type = models.CharField(max_length=100, null=True, blank=True)
    status       = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    cost         = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)

    class Meta:
        ordering = ["scene_number"]
        constraints = [
            models.UniqueConstraint(fields=["storyboard", "scene_number"],
                                    name="unique_scene_number_per_storyboard"),
        ]

    def __str__(self):
        return f"Scene {self.scene_number} of {self.storyboard_id}"


class QueueJob(models.Model):
    STATUS_QUEUED     = "queued"
    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED  = "completed"
    STATUS_FAILED     = "failed"

    STATUS_CHOICES = [
        (STATUS_QUEUED, "Queued"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
    ]
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)

    # Referenced by id only: a job never owns its storyboard.
    storyboard_id = models.UUIDField(db_index=True)
    user_id       = models.CharField(max_length=200, db_index=True)
    status        = models.CharField(max_length=20, choices=STATUS_CHOICES,
                                     default=STATUS_QUEUED, db_index=True)
    queued_at     = models.DateTimeField(db_index=True)
    started_at    = models.DateTimeField(null=True, blank=True)
    completed_at  = models.DateTimeField(null=True, blank=True)
    retry_count   = models.PositiveIntegerField(default=0)
    error         = models.TextField(null=True, blank=True)

    def __str__(self):
        return f"QueueJob {self.pk} ({self.status})"


class RateWindow(models.Model):
    source_key    = models.CharField(max_length=200)
    window_start  = models.DateTimeField(db_index=True)
    request_count = models.PositiveIntegerField(default=0)
    last_updated  = models.DateTimeField()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["source_key", "window_start"],
                                    name="unique_rate_window_per_source"),
        ]
        indexes = [
            models.Index(fields=["source_key", "window_start"], name="rate_window_source_minute"),
        ]

    def __str__(self):
        return f"{self.source_key}@{self.window_start:%H:%M}: {self.request_count}"


class UserApiKey(models.Model):
    user_id            = models.CharField(max_length=200, unique=True)
    has_api_key        = models.BooleanField(default=False)
    api_key_hash       = models.CharField(max_length=64, null=True, blank=True)
    encrypted_api_key  = models.TextField(null=True, blank=True)
    api_key_updated_at = models.DateTimeField(null=True, blank=True)
    byok_enabled       = models.BooleanField(default=False)

    def __str__(self):
        return f"API key for {self.user_id} (byok={'on' if self.byok_enabled else 'off'})"
