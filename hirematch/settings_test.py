"""
Django Test Settings for the HireMatch project.

Overrides the main settings for fast, isolated test runs.

Usage:
    pytest --ds=hirematch.settings_test
"""

from .settings import *  # noqa: F401, F403

# =============================================================================
# TEST ENVIRONMENT CONFIGURATION
# =============================================================================

DEBUG = False
TESTING = True

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# =============================================================================
# CACHING CONFIGURATION
# =============================================================================

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'hirematch-tests',
    },
}

# =============================================================================
# CELERY CONFIGURATION
# =============================================================================

# Execute tasks synchronously during tests
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

# =============================================================================
# THIRD-PARTY SERVICE MOCKING
# =============================================================================

OPENAI_API_KEY = 'sk-test-mock-key-for-testing'

# =============================================================================
# AI MATCHING
# =============================================================================

# Small vectors keep fixtures readable
AI_MATCHING_EMBEDDING_DIMENSION = 8
AI_MATCHING_RETRY_DELAY = 0
AI_MATCHING_BATCH_PAUSE = 0

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

# Minimal logging during tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
}
