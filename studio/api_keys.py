"""
Bring-your-own-key (BYOK) management.

A user may register their own Gemini key; while BYOK is enabled their
storyboards skip the shared queue and are processed under a per-user rate
limit. Keys are stored encrypted with Fernet, keyed off ``SECRET_KEY``.
"""
import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.utils import timezone

from .exceptions import ApiKeyError
from .models import UserApiKey

logger = logging.getLogger(__name__)

GEMINI_KEY_PREFIX = "AIza"
GEMINI_KEY_MIN_LENGTH = 39


def _fernet():
    digest = hashlib.sha256(settings.SECRET_KEY.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_api_key(api_key: str) -> str:
    return _fernet().encrypt(api_key.encode("utf-8")).decode("ascii")


def decrypt_api_key(token: str) -> str:
    return _fernet().decrypt(token.encode("ascii")).decode("utf-8")


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


def is_valid_gemini_api_key(api_key: str) -> bool:
    return api_key.startswith(GEMINI_KEY_PREFIX) and len(api_key) >= GEMINI_KEY_MIN_LENGTH


def set_user_api_key(user_id: str, api_key: str) -> UserApiKey:
    if not is_valid_gemini_api_key(api_key or ""):
        raise ApiKeyError(
            "Invalid API key format. Please ensure you're using a valid Gemini API key from Google AI Studio."
        )

    record, _ = UserApiKey.objects.get_or_create(user_id=user_id)
    record.has_api_key        = True
    record.api_key_hash       = hash_api_key(api_key)
    record.encrypted_api_key  = encrypt_api_key(api_key)
    record.api_key_updated_at = timezone.now()
    record.byok_enabled       = True
    record.save()

    logger.info(f"🔑 User {user_id} set their API key (BYOK enabled)")
    return record


def remove_user_api_key(user_id: str) -> UserApiKey:
    try:
        record = UserApiKey.objects.get(user_id=user_id)
    except UserApiKey.DoesNotExist:
        raise ApiKeyError("User not found.")

    record.has_api_key        = False
    record.api_key_hash       = None
    record.encrypted_api_key  = None
    record.api_key_updated_at = None
    record.byok_enabled       = False
    record.save()

    logger.info(f"🔑 User {user_id} removed their API key (BYOK disabled)")
    return record


def toggle_byok(user_id: str, enabled: bool) -> UserApiKey:
    try:
        record = UserApiKey.objects.get(user_id=user_id)
    except UserApiKey.DoesNotExist:
        raise ApiKeyError("User not found.")

    if enabled and not record.has_api_key:
        raise ApiKeyError("Please add an API key first before enabling BYOK.")

    record.byok_enabled = enabled
    record.save(update_fields=["byok_enabled"])
    logger.info(f"🔑 User {user_id} {'enabled' if enabled else 'disabled'} BYOK")
    return record


def get_byok_status(user_id: str) -> dict:
    record = UserApiKey.objects.filter(user_id=user_id).first()
    if record is None:
        return {"has_api_key": False, "byok_enabled": False, "api_key_updated_at": None}
    return {
        "has_api_key": record.has_api_key,
        "byok_enabled": record.byok_enabled,
        "api_key_updated_at": record.api_key_updated_at,
    }


def get_user_api_key(user_id: str) -> Optional[str]:
    """The decrypted key, or None when the user has none or BYOK is off."""
    record = UserApiKey.objects.filter(user_id=user_id).first()
    if record is None or not record.encrypted_api_key or not record.byok_enabled:
        return None
    try:
        return decrypt_api_key(record.encrypted_api_key)
    except InvalidToken:
        logger.error(f"❌ Stored API key for user {user_id} could not be decrypted")
        return None


def should_use_byok(user_id: str) -> bool:
    return UserApiKey.objects.filter(user_id=user_id, has_api_key=True, byok_enabled=True).exists()
