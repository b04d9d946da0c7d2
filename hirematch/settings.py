"""
Django settings for the HireMatch project.

All deployment-specific values are read from the environment (or a ``.env``
file next to ``manage.py``) through django-environ.

Sections:
- Core Django configuration
- Database and cache
- Celery
- OpenAI and AI matching tunables
- Logging
"""

from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
)
environ.Env.read_env(BASE_DIR / '.env')

# =============================================================================
# CORE
# =============================================================================

SECRET_KEY = env('SECRET_KEY', default='django-insecure-change-me')
DEBUG = env('DEBUG')
ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=['localhost', '127.0.0.1'])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'ats',
    'ai_matching',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'hirematch.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'hirematch.wsgi.application'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# =============================================================================
# DATABASE
# =============================================================================

# PostgreSQL in production, e.g. postgres://user:pass@db:5432/hirematch
DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# =============================================================================
# CACHE
# =============================================================================

REDIS_URL = env('REDIS_URL', default='redis://127.0.0.1:6379')

CACHES = {
    'default': env.cache('CACHE_URL', default=f'{REDIS_URL}/1'),
}

# =============================================================================
# CELERY
# =============================================================================

CELERY_BROKER_URL = env('CELERY_BROKER_URL', default=f'{REDIS_URL}/0')
CELERY_RESULT_BACKEND = env('CELERY_RESULT_BACKEND', default=f'{REDIS_URL}/0')
CELERY_TASK_ALWAYS_EAGER = env.bool('CELERY_TASK_ALWAYS_EAGER', default=False)

# =============================================================================
# OPENAI
# =============================================================================

OPENAI_API_KEY = env('OPENAI_API_KEY', default='')
OPENAI_EMBEDDING_MODEL = env('OPENAI_EMBEDDING_MODEL', default='text-embedding-3-large')
OPENAI_MODEL = env('OPENAI_MODEL', default='gpt-4o')
OPENAI_DETAIL_MODEL = env('OPENAI_DETAIL_MODEL', default='gpt-4o-mini')
OPENAI_TIMEOUT = env.float('OPENAI_TIMEOUT', default=30.0)

# =============================================================================
# AI MATCHING
# =============================================================================

# Length of every stored and compared embedding vector
AI_MATCHING_EMBEDDING_DIMENSION = env.int('AI_MATCHING_EMBEDDING_DIMENSION', default=3072)
AI_MATCHING_CACHE_TTL = env.int('AI_MATCHING_CACHE_TTL', default=86400 * 7)

# Upstream retry loop (seconds)
AI_MATCHING_MAX_RETRIES = env.int('AI_MATCHING_MAX_RETRIES', default=3)
AI_MATCHING_RETRY_DELAY = env.float('AI_MATCHING_RETRY_DELAY', default=1.0)
AI_MATCHING_BATCH_PAUSE = env.float('AI_MATCHING_BATCH_PAUSE', default=0.1)

# Scoring
AI_MATCHING_MATCH_THRESHOLD = env.float('AI_MATCHING_MATCH_THRESHOLD', default=0.7)
AI_MATCHING_KEYWORD_FLOOR = env.float('AI_MATCHING_KEYWORD_FLOOR', default=0.5)
AI_MATCHING_CANDIDATE_POOL_THRESHOLD = env.float(
    'AI_MATCHING_CANDIDATE_POOL_THRESHOLD', default=0.5
)
AI_MATCHING_CATEGORY_WEIGHTS = {
    'must': 0.6,
    'should': 0.3,
    'nice': 0.1,
}

# Fit-score queue
AI_MATCHING_FIT_SCORE_BATCH_JITTER = env.float('AI_MATCHING_FIT_SCORE_BATCH_JITTER', default=5.0)

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = env('LOG_LEVEL', default='INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'ai_matching': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'ats': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'hirematch': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
