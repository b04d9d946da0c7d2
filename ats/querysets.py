"""
ATS QuerySets - Query helpers for the records the matching engine reads.

This module provides custom QuerySet classes with methods for:
- Selecting candidates that carry a profile embedding
- Scoping applications to a job variant and to scored rows
- Score distribution aggregates for matching statistics
"""

from django.db import models
from django.db.models import Avg, Count, Q


class CandidateQuerySet(models.QuerySet):
    """QuerySet for Candidate with embedding helpers."""

    def with_embeddings(self):
        """Candidates whose ``skill_embeddings`` vector has been computed."""
        return self.filter(skill_embeddings__isnull=False).exclude(skill_embeddings=[])

    def without_embeddings(self):
        return self.filter(Q(skill_embeddings__isnull=True) | Q(skill_embeddings=[]))

    def excluding_applicants_to(self, job_variant_id):
        """Drop candidates that already applied to the given job variant."""
        return self.exclude(applications__company_job_variant_id=job_variant_id)


class ApplicationQuerySet(models.QuerySet):
    """
    QuerySet for Application.

    Provides scoping by job variant and fit-score aggregates.
    """

    def for_job_variant(self, job_variant_id):
        return self.filter(company_job_variant_id=job_variant_id)

    def scored(self):
        """Applications whose fit score has been computed."""
        return self.filter(fit_score__isnull=False)

    def with_related(self):
        return self.select_related(
            'candidate',
            'company_job_variant',
            'company_job_variant__job_template',
        )

    def fit_score_summary(self):
        """
        Aggregate the average fit score and the score distribution.

        Bands: excellent >= 90, good 70-89, fair 50-69, poor < 50.

        Returns:
            dict: ``average``, ``excellent``, ``good``, ``fair``, ``poor``
        """
        return self.scored().aggregate(
            average=Avg('fit_score'),
            excellent=Count('id', filter=Q(fit_score__gte=90)),
            good=Count('id', filter=Q(fit_score__gte=70, fit_score__lt=90)),
            fair=Count('id', filter=Q(fit_score__gte=50, fit_score__lt=70)),
            poor=Count('id', filter=Q(fit_score__lt=50)),
        )
