"""
AI Matching Models

This module contains:
- MatchExplanation: the persisted, human-readable record derived from a
  match result, one per application
- MatchingJobRecord: bounded history of fit-score jobs, used as the
  dead-letter list for failed runs
"""

import uuid

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.utils.translation import gettext_lazy as _


SCORE_VALIDATORS = [MinValueValidator(0), MaxValueValidator(100)]


class MatchExplanation(models.Model):
    """
    Stored explanation of a candidate-job match.

    ``detailed_analysis`` is a snapshot of every requirement match,
    including the requirement's id, description, category, type, weight and
    alternatives at the time the explanation was generated.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    application = models.OneToOneField(
        'ats.Application',
        on_delete=models.CASCADE,
        related_name='match_explanation'
    )

    overall_score = models.PositiveSmallIntegerField(validators=SCORE_VALIDATORS)
    must_have_score = models.PositiveSmallIntegerField(validators=SCORE_VALIDATORS)
    should_have_score = models.PositiveSmallIntegerField(validators=SCORE_VALIDATORS)
    nice_to_have_score = models.PositiveSmallIntegerField(validators=SCORE_VALIDATORS)

    strengths = models.JSONField(default=list, blank=True)
    gaps = models.JSONField(default=list, blank=True)
    recommendations = models.JSONField(default=list, blank=True)
    detailed_analysis = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Match Explanation')
        verbose_name_plural = _('Match Explanations')
        ordering = ['-updated_at']

    def __str__(self):
        return f"Match explanation for {self.application_id}: {self.overall_score}"

    @property
    def requirement_ids(self):
        return [
            item['requirement']['id']
            for item in self.detailed_analysis
            if item.get('requirement', {}).get('id')
        ]


class MatchingJobRecordManager(models.Manager):
    """Manager writing job history rows and pruning old ones."""

    def record(
        self,
        task_id,
        job_name,
        payload=None,
        succeeded=True,
        attempts=1,
        error='',
        keep=10
    ):
        """
        Store the outcome of a finished job and keep only the newest ``keep``
        records with the same job name and status.
        """
        payload = payload or {}
        status = (
            MatchingJobRecord.Status.COMPLETED if succeeded
            else MatchingJobRecord.Status.FAILED
        )
        with transaction.atomic():
            record = self.create(
                task_id=task_id or '',
                job_name=job_name,
                application_id=str(payload.get('application_id') or ''),
                payload=payload,
                status=status,
                attempts=attempts,
                error=error or '',
            )
            self.prune(job_name, status, keep)
        return record

    def prune(self, job_name, status, keep):
        """Delete all but the newest ``keep`` records. Returns the count removed."""
        stale_ids = list(
            self.filter(job_name=job_name, status=status)
            .order_by('-finished_at', '-id')
            .values_list('id', flat=True)[keep:]
        )
        if not stale_ids:
            return 0
        deleted, _ = self.filter(id__in=stale_ids).delete()
        return deleted


class MatchingJobRecord(models.Model):
    """
    Finished fit-score job.

    Only a bounded number of completed and failed records are kept per job
    name; failed ones remain available for manual inspection in the admin.
    """

    class Status(models.TextChoices):
        COMPLETED = 'completed', _('Completed')
        FAILED = 'failed', _('Failed')

    task_id = models.CharField(max_length=255, blank=True, db_index=True)
    job_name = models.CharField(max_length=255, db_index=True)
    application_id = models.CharField(max_length=64, blank=True, db_index=True)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices)
    attempts = models.PositiveSmallIntegerField(default=1)
    error = models.TextField(blank=True)
    finished_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = MatchingJobRecordManager()

    class Meta:
        verbose_name = _('Matching Job Record')
        verbose_name_plural = _('Matching Job Records')
        ordering = ['-finished_at']
        indexes = [
            models.Index(fields=['job_name', 'status', 'finished_at'], name='ai_job_name_status_idx'),
        ]

    def __str__(self):
        return f"{self.job_name} [{self.status}] {self.task_id}"
