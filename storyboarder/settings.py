import dj_database_url
from decimal import Decimal
from pathlib import Path
from decouple import config  # for loading environment variables


# --- BASE SETTINGS ---
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = config("SECRET_KEY", default="insecure-secret-for-dev")

DEBUG = config("DEBUG", default=True, cast=bool)

ALLOWED_HOSTS = ["*"]  # Update for production

CSRF_TRUSTED_ORIGINS = ['https://*.onrender.com']

# --- INSTALLED APPS ---
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party
    'rest_framework',
    'corsheaders',
    'django_celery_results',

    'studio.apps.StudioConfig',
]

# --- MIDDLEWARE ---
MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',  # must be before CommonMiddleware
    'django.middleware.common.CommonMiddleware',

    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'storyboarder.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'storyboarder.wsgi.application'

# --- DATABASE ---
DATABASES = {
    'default': dj_database_url.config(
        default=config('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=600,
        ssl_require=config('DATABASE_SSL_REQUIRE', default=False, cast=bool)
    )
}

# --- PASSWORDS / AUTH ---
AUTH_PASSWORD_VALIDATORS = []

# --- INTERNATIONALIZATION ---
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# --- STATIC / MEDIA FILES ---
STATIC_URL = 'static/'
MEDIA_URL = 'media/'
MEDIA_ROOT = config('MEDIA_ROOT', default=str(BASE_DIR / 'media'))

# --- DEFAULT PRIMARY KEY ---
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# --- REST FRAMEWORK CONFIG ---
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ]
}

# --- CORS ---
CORS_ALLOW_ALL_ORIGINS = True  # Allow frontend requests

# --- LOGGING ---
PYTHON_ENVIRONMENT = config('PYTHON_ENVIRONMENT', default='development').lower()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'loggers': {
        'studio': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'storyboarder': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# --- CELERY ---
CELERY_BROKER_URL = config('REDIS_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = 'django-db'
CELERY_WORKER_CONCURRENCY = 1  # Critical: Only 1 worker process!
CELERY_WORKER_MAX_TASKS_PER_CHILD = 10  # Recycle workers periodically

# --- GENERATION SERVICES ---
GEMINI_API_KEY = config('GEMINI_API_KEY', default='')
GEMINI_IMAGE_MODEL = config('GEMINI_IMAGE_MODEL', default='gemini-2.0-flash-preview-image-generation')
OPENROUTER_API_KEY = config('OPENROUTER_API_KEY', default='')
STORY_MODEL = config('STORY_MODEL', default='google/gemini-2.0-flash-lite-001')

# --- QUEUE & RATE LIMITING ---
RATE_LIMIT_PER_MINUTE = config('RATE_LIMIT_PER_MINUTE', default=10, cast=int)
USER_RATE_LIMIT_PER_MINUTE = config('USER_RATE_LIMIT_PER_MINUTE', default=10, cast=int)
RATE_WINDOW_RETENTION_HOURS = config('RATE_WINDOW_RETENTION_HOURS', default=2, cast=int)
QUEUE_RETENTION_HOURS = config('QUEUE_RETENTION_HOURS', default=24, cast=int)

# Seconds between queue processor runs
QUEUE_INTERVAL_S = config('QUEUE_INTERVAL_S', default=300, cast=float)
MAX_RETRIES = config('MAX_RETRIES', default=3, cast=int)
SCENE_DELAY_S = config('SCENE_DELAY_S', default=6, cast=float)
RATE_LIMIT_BACKOFF_S = config('RATE_LIMIT_BACKOFF_S', default=6, cast=float)
SECONDS_PER_JOB = config('SECONDS_PER_JOB', default=30, cast=int)
PROCESSING_TIMEOUT_S = config('PROCESSING_TIMEOUT_S', default=3600, cast=int)

# --- COSTS (USD) ---
TEXT_COST = config('TEXT_COST', default='0.025', cast=Decimal)
IMAGE_COST = config('IMAGE_COST', default='0.039', cast=Decimal)
