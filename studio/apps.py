# studio/apps.py
import os
import logging
from django.apps import AppConfig

logger = logging.getLogger(__name__)


class StudioConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'studio'

    def ready(self):
        logger.info(f"✅ Storyboard studio ready (PID: {os.getpid()})")
