import os
import logging
import threading
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
from django.conf import settings
from django.http import JsonResponse

from . import api_keys, storyboards, work_queue
from .blob_store import DjangoBlobStore
from .exceptions import (
    ApiKeyError,
    GenerationError,
    RateLimitExceeded,
    StoryboardError,
    StoryboardNotFound,
    StoryboardPermissionDenied,
    StoryValidationError,
)
from .rate_limiter import SHARED_SOURCE_KEY, shared_rate_limiter, user_rate_limiter, user_source_key
from .serializers import QueueJobSerializer, StoryboardDetailSerializer, StoryboardSerializer
from .workflow import create_storyboard_from_prompt

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (StoryValidationError, status.HTTP_400_BAD_REQUEST),
    (ApiKeyError, status.HTTP_400_BAD_REQUEST),
    (StoryboardPermissionDenied, status.HTTP_403_FORBIDDEN),
    (StoryboardNotFound, status.HTTP_404_NOT_FOUND),
    (RateLimitExceeded, status.HTTP_429_TOO_MANY_REQUESTS),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
]


def error_response(error):
    for error_class, code in ERROR_STATUS:
        if isinstance(error, error_class):
            return Response({"error": str(error)}, status=code)
    return Response({"error": str(error)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def home(request):
    return JsonResponse({"service": "storyboarder", "api": "/api/"})


@api_view(['POST'])
def create_storyboard(request):
    logger.info(f"Handling request on worker: {os.getpid()}-{threading.get_ident()}")
    prompt = request.data.get("prompt")
    user_id = request.data.get("user_id")

    if not prompt or not user_id:
        return Response({"error": "prompt and user_id are required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        result = create_storyboard_from_prompt(prompt, user_id)
    except StoryboardError as e:
        logger.warning(f"❌ Story generation failed for user {user_id}: {e}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"❌ Story generation failed for user {user_id}")
        return Response({"error": f"Story generation failed: {e}"},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    data = StoryboardSerializer(result.storyboard).data

    if result.byok:
        response_data = {
            "status": result.storyboard.status,
            "byok": True,
            "storyboard": data,
        }
        if result.processing:
            response_data["completed_scenes"] = result.processing.completed_scenes
            response_data["rate_limit_exceeded"] = result.processing.rate_limit_exceeded
        if result.error:
            response_data["error"] = result.error
        return Response(response_data, status=status.HTTP_200_OK)

    position = result.queue_position or 0
    return Response({
        "status": "queued",
        "byok": False,
        "storyboard": data,
        "queue_job_id": result.queue_job_id,
        "position_in_queue": position,
        "estimated_wait_seconds": position * settings.SECONDS_PER_JOB,
    }, status=status.HTTP_202_ACCEPTED)


@api_view(['POST'])
def get_storyboard(request):
    storyboard_id = request.data.get("storyboard_id")
    if not storyboard_id:
        return Response({"error": "storyboard_id is required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        storyboard = storyboards.get_storyboard(storyboard_id)
    except StoryboardError as e:
        return error_response(e)

    data = StoryboardDetailSerializer(storyboard, context={"blob_store": DjangoBlobStore()}).data
    return Response(data)


@api_view(['POST'])
def list_storyboards(request):
    user_id = request.data.get("user_id")
    if not user_id:
        return Response({"error": "user_id is required"}, status=status.HTTP_400_BAD_REQUEST)

    items = storyboards.list_user_storyboards(user_id)
    return Response({"storyboards": StoryboardSerializer(items, many=True).data})


@api_view(['POST'])
def delete_storyboard(request):
    storyboard_id = request.data.get("storyboard_id")
    user_id = request.data.get("user_id")
    if not storyboard_id or not user_id:
        return Response({"error": "storyboard_id and user_id are required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        storyboards.delete_storyboard(storyboard_id, user_id, DjangoBlobStore())
    except StoryboardError as e:
        return error_response(e)

    return Response({"deleted": True, "storyboard_id": storyboard_id})


@api_view(['POST'])
def queue_status(request):
    storyboard_id = request.data.get("storyboard_id")
    if not storyboard_id:
        return Response({"error": "storyboard_id is required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        storyboards.get_storyboard(storyboard_id)
    except StoryboardError as e:
        return error_response(e)

    found = work_queue.get_status_for(storyboard_id)
    if found is None:
        return Response({"error": "Storyboard is not queued"}, status=status.HTTP_404_NOT_FOUND)

    response_data = QueueJobSerializer(found.job).data
    response_data["position"] = found.position
    return Response(response_data)


@api_view(['GET'])
def queue_stats(request):
    stats = work_queue.get_stats()
    return Response({
        "total_queued": stats.total_queued,
        "total_processing": stats.total_processing,
        "total_completed": stats.total_completed,
        "total_failed": stats.total_failed,
        "estimated_wait_minutes": stats.estimated_wait_minutes,
    })


@api_view(['GET'])
def rate_limit_status(request):
    user_id = request.query_params.get("user_id")
    if user_id:
        current = user_rate_limiter().get_status(user_source_key(user_id))
    else:
        current = shared_rate_limiter().get_status(SHARED_SOURCE_KEY)

    return Response({
        "current_count": current.current_count,
        "limit": current.limit,
        "remaining": current.remaining,
        "reset_time": current.reset_time.isoformat(),
        "limit_exceeded": current.limit_exceeded,
    })


@api_view(['POST'])
def set_api_key(request):
    user_id = request.data.get("user_id")
    api_key = request.data.get("api_key")
    if not user_id or not api_key:
        return Response({"error": "user_id and api_key are required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        api_keys.set_user_api_key(user_id, api_key)
    except ApiKeyError as e:
        return error_response(e)
    return Response({"success": True})


@api_view(['POST'])
def remove_api_key(request):
    user_id = request.data.get("user_id")
    if not user_id:
        return Response({"error": "user_id is required"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        api_keys.remove_user_api_key(user_id)
    except ApiKeyError as e:
        return error_response(e)
    return Response({"success": True})


@api_view(['POST'])
def toggle_byok(request):
    user_id = request.data.get("user_id")
    enabled = request.data.get("enabled")
    if not user_id or not isinstance(enabled, bool):
        return Response({"error": "user_id and a boolean enabled are required"},
                        status=status.HTTP_400_BAD_REQUEST)

    try:
        api_keys.toggle_byok(user_id, enabled)
    except ApiKeyError as e:
        return error_response(e)
    return Response({"success": True, "byok_enabled": enabled})


@api_view(['POST'])
def byok_status(request):
    user_id = request.data.get("user_id")
    if not user_id:
        return Response({"error": "user_id is required"}, status=status.HTTP_400_BAD_REQUEST)

    current = api_keys.get_byok_status(user_id)
    updated_at = current["api_key_updated_at"]
    return Response({
        "has_api_key": current["has_api_key"],
        "byok_enabled": current["byok_enabled"],
        "api_key_updated_at": updated_at.isoformat() if updated_at else None,
    })


@api_view(['GET'])
def health_check(request):
    port = os.getenv("PORT", "8000")
    return Response({"status": "ok", "message": f"Server running on PORT {port}"}, status=200)
