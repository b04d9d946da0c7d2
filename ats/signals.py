"""
ATS Signals - Automatic actions for ATS events.
"""

import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Application

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Application)
def queue_fit_score_on_create(sender, instance, created, raw=False, **kwargs):
    """Queue the fit-score job once the new application is committed."""
    if not created or raw:
        return

    from ai_matching.tasks import queue_fit_score_calculation

    transaction.on_commit(partial(queue_fit_score_calculation, instance.pk))
