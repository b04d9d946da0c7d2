"""
Application Service

Entry points of the application workflow that touch the matching engine:
- create_application: store an application (scoring is queued on commit)
- update_fit_score: manual fit-score override
- calculate_and_update_fit_score: the fit-score job handler
- recalculate_fit_score: synchronous recalculation
- batch_calculate_fit_scores: re-score the applications of a job variant
"""
import logging
import random
from typing import List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from ai_matching.exceptions import ApplicationNotFound, CandidateNotFound, JobVariantNotFound

from .exceptions import ApplicationConflictError
from .models import Application, Candidate, CompanyJobVariant

logger = logging.getLogger(__name__)


class ApplicationService:
    """
    Service for applications and their fit scores.

    The matching engine and explanation service are created lazily so the
    OpenAI client is only built when a score is actually computed.

    Usage:
        service = ApplicationService()

        application = service.create_application(candidate.id, job_variant.id)
        service.recalculate_fit_score(application.id)
        queued = service.batch_calculate_fit_scores(job_variant.id)
    """

    def __init__(self, matching_engine=None, explanation_service=None):
        self._matching_engine = matching_engine
        self._explanation_service = explanation_service

    @property
    def matching_engine(self):
        if self._matching_engine is None:
            from ai_matching.matching import MatchingEngine
            self._matching_engine = MatchingEngine()
        return self._matching_engine

    @property
    def explanation_service(self):
        if self._explanation_service is None:
            from ai_matching.services import get_explanation_service
            self._explanation_service = get_explanation_service()
        return self._explanation_service

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def create_application(
        self,
        candidate_id,
        job_variant_id,
        status: str = Application.ApplicationStatus.APPLIED
    ) -> Application:
        """
        Create an application.

        The fit-score job is queued by the ``post_save`` signal once the
        surrounding transaction commits; a queueing failure never fails
        this call.

        Raises:
            CandidateNotFound, JobVariantNotFound
            ApplicationConflictError: the candidate already applied to the job
        """
        if not Candidate.objects.filter(pk=candidate_id).exists():
            raise CandidateNotFound(candidate_id)
        if not CompanyJobVariant.objects.filter(pk=job_variant_id).exists():
            raise JobVariantNotFound(job_variant_id)

        existing = Application.objects.filter(
            candidate_id=candidate_id,
            company_job_variant_id=job_variant_id,
        )
        if existing.exists():
            raise ApplicationConflictError(candidate_id, job_variant_id)

        try:
            with transaction.atomic():
                application = Application.objects.create(
                    candidate_id=candidate_id,
                    company_job_variant_id=job_variant_id,
                    status=status,
                )
        except IntegrityError as e:
            raise ApplicationConflictError(candidate_id, job_variant_id) from e

        logger.info(
            f"Created application {application.pk} for candidate {candidate_id} "
            f"and job variant {job_variant_id}"
        )
        return application

    def get_application(self, application_id) -> Application:
        try:
            return Application.objects.with_related().get(pk=application_id)
        except Application.DoesNotExist:
            raise ApplicationNotFound(application_id)

    # ------------------------------------------------------------------
    # Fit scores
    # ------------------------------------------------------------------

    def update_fit_score(self, application_id, fit_score: int) -> Application:
        """
        Manually set the fit score of an application.

        Raises:
            ValidationError: score outside 0-100
            ApplicationNotFound
        """
        if isinstance(fit_score, bool) or not isinstance(fit_score, int) or not 0 <= fit_score <= 100:
            raise ValidationError('Fit score must be an integer between 0 and 100')

        application = self.get_application(application_id)
        application.fit_score = fit_score
        application.save(update_fields=['fit_score', 'last_updated', 'updated_at'])

        logger.info(f"Updated fit score of application {application_id} to {fit_score}")
        return application

    def calculate_and_update_fit_score(self, application_id) -> int:
        """
        Score an application, store the fit score and its explanation.

        This is the handler run by the fit-score job; it is idempotent.

        Returns:
            The new fit score

        Raises:
            ApplicationNotFound
            UpstreamServiceError: embeddings could not be generated
        """
        logger.info(f"Calculating fit score for application {application_id}")

        application = self.get_application(application_id)
        candidate = application.candidate
        job_variant = application.company_job_variant

        engine = self.matching_engine
        requirements = engine.get_effective_requirements(job_variant)
        match_result = engine.score(candidate, requirements, job_variant.pk)

        application.fit_score = match_result.fit_score
        application.save(update_fields=['fit_score', 'last_updated', 'updated_at'])

        self.explanation_service.generate_match_explanation(
            application.pk,
            match_result,
            candidate,
            job_variant,
        )

        logger.info(
            f"Calculated fit score {match_result.fit_score}% for application {application_id}"
        )
        return match_result.fit_score

    def recalculate_fit_score(self, application_id) -> Application:
        """Recalculate synchronously and return the refreshed application."""
        self.calculate_and_update_fit_score(application_id)
        return self.get_application(application_id)

    def batch_calculate_fit_scores(
        self,
        job_variant_id,
        candidate_ids: Optional[List] = None
    ) -> int:
        """
        Queue one fit-score job per application to a job variant.

        Each job gets a random countdown of up to
        ``AI_MATCHING_FIT_SCORE_BATCH_JITTER`` seconds to spread the load on
        the OpenAI APIs. Queueing errors propagate.

        Returns:
            Number of jobs queued
        """
        from ai_matching.tasks import enqueue_fit_score_calculation

        jitter = getattr(settings, 'AI_MATCHING_FIT_SCORE_BATCH_JITTER', 5.0)

        applications = Application.objects.for_job_variant(job_variant_id)
        if candidate_ids:
            applications = applications.filter(candidate_id__in=candidate_ids)

        queued = 0
        for application_id in applications.values_list('id', flat=True):
            enqueue_fit_score_calculation(application_id, countdown=random.uniform(0, jitter))
            queued += 1

        logger.info(f"Queued {queued} fit score jobs for job variant {job_variant_id}")
        return queued
