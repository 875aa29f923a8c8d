from django.urls import path
from .views import create_storyboard
from .views import get_storyboard
from .views import list_storyboards
from .views import delete_storyboard
from .views import queue_status
from .views import queue_stats
from .views import rate_limit_status
from .views import set_api_key
from .views import remove_api_key
from .views import toggle_byok
from .views import byok_status
from .views import health_check

urlpatterns = [
    path('createStoryboard/', create_storyboard),
    path('getStoryboard/', get_storyboard),
    path('listStoryboards/', list_storyboards),
    path('deleteStoryboard/', delete_storyboard),
    path('getQueueStatus/', queue_status),
    path('getQueueStats/', queue_stats),
    path('getRateLimitStatus/', rate_limit_status),
    path('setApiKey/', set_api_key),
    path('removeApiKey/', remove_api_key),
    path('toggleByok/', toggle_byok),
    path('getByokStatus/', byok_status),
    path('healthcheck/', health_check),
]
