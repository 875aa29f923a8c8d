import logging
from decimal import Decimal

from django.conf import settings

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ('httpx', 'httpcore', 'urllib3', 'openai', 'google_genai')


def is_development():
    return settings.PYTHON_ENVIRONMENT == 'development'


if not is_development():
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_conditionally(level, msg, *args, logger=logger, **kwargs):
    """
    Logs a message only if in development environment or if the log level
    is WARNING, ERROR, or CRITICAL.
    """
    if is_development() or level >= logging.WARNING:
        logger.log(level, msg, *args, **kwargs)


def print_env_variables():
    for name in ("QUEUE_INTERVAL_S", "RATE_LIMIT_PER_MINUTE", "USER_RATE_LIMIT_PER_MINUTE",
                 "MAX_RETRIES", "SCENE_DELAY_S", "RATE_LIMIT_BACKOFF_S", "GEMINI_IMAGE_MODEL",
                 "STORY_MODEL"):
        print(f"➡️  {name}:", getattr(settings, name, 'Not Set'))
    print("➡️  GEMINI_API_KEY:", 'Set' if settings.GEMINI_API_KEY else 'Not Set')
    print("➡️  OPENROUTER_API_KEY:", 'Set' if settings.OPENROUTER_API_KEY else 'Not Set')


def estimate_storyboard_cost(scene_count, text_cost=None, image_cost=None) -> Decimal:
    text_cost  = settings.TEXT_COST if text_cost is None else text_cost
    image_cost = settings.IMAGE_COST if image_cost is None else image_cost
    return text_cost + image_cost * scene_count
