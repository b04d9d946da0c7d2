"""
Base Task Classes for HireMatch Celery Tasks

This module provides:
- BackoffRetryTask: exponential backoff retries with attempt logging
- RetainedHistoryTask: a bounded, inspectable history of finished jobs
  (the last N completed and the last M failed runs per task name)
"""

import logging

from celery import Task
from django.apps import apps
from django.db import DatabaseError

logger = logging.getLogger(__name__)


# =============================================================================
# BACKOFF RETRY TASK
# =============================================================================

class BackoffRetryTask(Task):
    """
    Base task with automatic retry and exponential backoff.

    Celery's ``autoretry_for`` machinery performs the retry; this class only
    pins the policy and logs each attempt.

    Usage:
        @shared_task(bind=True, base=BackoffRetryTask)
        def my_task(self, arg1):
            ...
    """

    autoretry_for = (Exception,)
    max_retries = 2
    retry_backoff = 2
    retry_backoff_max = 600
    retry_jitter = False

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_delay(self, retries: int) -> int:
        """
        Countdown before the next attempt: ``base * 2^retries`` seconds,
        capped at ``retry_backoff_max``.
        """
        return min(int(self.retry_backoff) * (2 ** retries), self.retry_backoff_max)

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        """Called when task is retried."""
        attempt = self.request.retries + 1
        logger.warning(
            f"Task {self.name}[{task_id}] failed on attempt "
            f"{attempt}/{self.max_attempts}, retrying in "
            f"{self.backoff_delay(self.request.retries)}s: {exc}"
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


# =============================================================================
# RETAINED HISTORY TASK
# =============================================================================

class RetainedHistoryTask(BackoffRetryTask):
    """
    Retry task that records every finished run in a history model.

    ``history_model`` is an ``app_label.ModelName`` string whose manager
    exposes ``record(...)``. Only the newest ``keep_completed`` successes
    and ``keep_failed`` failures are retained per task name; failures are
    kept for manual inspection.
    """

    history_model = 'ai_matching.MatchingJobRecord'
    keep_completed = 10
    keep_failed = 5

    def on_success(self, retval, task_id, args, kwargs):
        """Called when task completes successfully."""
        logger.debug(f"Task {self.name}[{task_id}] completed successfully")
        self._record(task_id, kwargs, succeeded=True)
        super().on_success(retval, task_id, args, kwargs)

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails after all retries."""
        logger.error(
            f"Task {self.name}[{task_id}] failed permanently after "
            f"{self.request.retries + 1} attempt(s): {exc}",
            exc_info=True
        )
        self._record(task_id, kwargs, succeeded=False, error=f"{type(exc).__name__}: {exc}")
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def _record(self, task_id, kwargs, succeeded: bool, error: str = ''):
        model = apps.get_model(self.history_model)
        try:
            model.objects.record(
                task_id=task_id,
                job_name=self.name,
                payload=dict(kwargs or {}),
                succeeded=succeeded,
                attempts=self.request.retries + 1,
                error=error,
                keep=self.keep_completed if succeeded else self.keep_failed,
            )
        except DatabaseError as e:
            logger.warning(f"Could not record history for task {task_id}: {e}")
