"""
ATS Managers - Model managers for the Applicant Tracking System.

Managers combine the QuerySet helpers in ``querysets.py`` with the default
manager so the helpers are available directly on ``Model.objects``.
"""

from django.db import models

from .querysets import ApplicationQuerySet, CandidateQuerySet


class CandidateManager(models.Manager.from_queryset(CandidateQuerySet)):
    """Manager for Candidate exposing the embedding helpers."""


class ApplicationManager(models.Manager.from_queryset(ApplicationQuerySet)):
    """Manager for Application exposing job-variant scoping and score aggregates."""
