"""
Celery configuration for the HireMatch project.

This module configures Celery for async task processing with:
- Auto-discovery of tasks from all registered Django apps
- A dedicated queue for candidate-job matching work
- Rate limiting for tasks that call the OpenAI APIs
- Bounded result retention
"""

import os

from celery import Celery
from kombu import Exchange, Queue

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hirematch.settings')

app = Celery('hirematch')

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks()


# ==================== QUEUE CONFIGURATION ====================

default_exchange = Exchange('default', type='direct')
matching_exchange = Exchange('matching', type='direct')

app.conf.task_queues = (
    Queue('default', default_exchange, routing_key='default'),
    Queue('matching', matching_exchange, routing_key='matching'),
)

app.conf.task_default_queue = 'default'
app.conf.task_default_exchange = 'default'
app.conf.task_default_routing_key = 'default'


# ==================== TASK ROUTING ====================

app.conf.task_routes = {
    'ai_matching.*': {'queue': 'matching', 'routing_key': 'matching'},
}


# ==================== RATE LIMITING ====================

app.conf.task_annotations = {
    # Embedding refreshes fan out to the embeddings API
    'ai_matching.update_candidate_embeddings': {'rate_limit': '10/m'},
}


# ==================== SERIALIZATION ====================

app.conf.task_serializer = 'json'
app.conf.result_serializer = 'json'
app.conf.accept_content = ['json']
app.conf.timezone = 'UTC'
app.conf.enable_utc = True


# ==================== RESULT BACKEND ====================

# Results are kept for 24 hours; job history lives in MatchingJobRecord
app.conf.result_expires = 86400


# ==================== WORKER CONFIGURATION ====================

app.conf.worker_max_tasks_per_child = 1000
app.conf.worker_prefetch_multiplier = 1

# Acknowledge after completion so a killed worker does not lose the job
app.conf.task_acks_late = True
app.conf.task_reject_on_worker_lost = True

