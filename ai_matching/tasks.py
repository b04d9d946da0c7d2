"""
Celery Tasks for AI Matching

This module contains the asynchronous side of the matching engine:
- calculate_fit_score: the fit-score job run for every new application
- queue_fit_score_calculation / enqueue_fit_score_calculation: producers
- update_candidate_embedding(s): profile embedding refresh
"""

import logging
from typing import List, Optional

from celery import shared_task

from hirematch.celery_tasks_base import BackoffRetryTask, RetainedHistoryTask

from .exceptions import MatchingNotFoundError, MatchingValidationError

logger = logging.getLogger(__name__)

FIT_SCORE_TASK = 'ai_matching.calculate_fit_score'
FIT_SCORE_QUEUE = 'matching'
EMBEDDING_CHUNK_SIZE = 10


# ============================================================================
# Fit Score Tasks
# ============================================================================

@shared_task(
    name=FIT_SCORE_TASK,
    bind=True,
    base=RetainedHistoryTask,
    dont_autoretry_for=(MatchingValidationError,),
)
def calculate_fit_score(self, application_id: str):
    """
    Calculate and store the fit score and match explanation of an application.

    Retried up to three attempts in total with exponential backoff, missing
    records included; invalid data fails immediately.

    Args:
        application_id: Application UUID

    Returns:
        Dict with the application id and its new fit score
    """
    from ats.services import ApplicationService

    logger.info(
        f"Calculating fit score for application {application_id} "
        f"(attempt {self.request.retries + 1}/{self.max_attempts})"
    )
    fit_score = ApplicationService().calculate_and_update_fit_score(application_id)

    return {'application_id': str(application_id), 'fit_score': fit_score}


def enqueue_fit_score_calculation(application_id, countdown: Optional[float] = None):
    """
    Put a fit-score job on the matching queue.

    Raises whatever the broker raises; see ``queue_fit_score_calculation``
    for the fire-and-forget variant.
    """
    options = {'queue': FIT_SCORE_QUEUE}
    if countdown is not None:
        options['countdown'] = countdown
    return calculate_fit_score.apply_async(
        kwargs={'application_id': str(application_id)},
        **options
    )


def queue_fit_score_calculation(application_id) -> bool:
    """
    Enqueue a fit-score job, never raising.

    Used after an application is created: a broker outage must not undo or
    fail the application itself.

    Returns:
        True if the job was queued
    """
    try:
        enqueue_fit_score_calculation(application_id)
    except Exception as e:
        logger.error(f"Failed to queue fit score calculation for application {application_id}: {e}")
        return False

    logger.info(f"Queued fit score calculation for application {application_id}")
    return True


# ============================================================================
# Embedding Update Tasks
# ============================================================================

@shared_task(
    name='ai_matching.update_candidate_embedding',
    bind=True,
    base=BackoffRetryTask,
    dont_autoretry_for=(MatchingValidationError, MatchingNotFoundError),
)
def update_candidate_embedding(self, candidate_id: str):
    """
    Recompute and store the profile embedding of one candidate.

    Returns:
        Dict with the candidate id and whether a vector was stored
    """
    from ats.models import Candidate
    from .exceptions import CandidateNotFound
    from .services import EmbeddingService, VectorStorageService

    try:
        candidate = Candidate.objects.get(pk=candidate_id)
    except Candidate.DoesNotExist:
        raise CandidateNotFound(candidate_id)

    embedding_service = EmbeddingService()
    text = embedding_service.build_candidate_text(candidate)
    if not text:
        logger.info(f"Candidate {candidate_id} has no profile text to embed")
        return {'candidate_id': str(candidate_id), 'updated': False}

    result = embedding_service.embed(text)
    VectorStorageService().store_candidate_embedding(candidate.pk, result.vector)

    logger.info(f"Updated embedding for candidate {candidate_id}")
    return {'candidate_id': str(candidate_id), 'updated': True}


@shared_task(
    name='ai_matching.update_candidate_embeddings',
    bind=True,
    base=BackoffRetryTask,
)
def update_candidate_embeddings(
    self,
    candidate_ids: Optional[List[str]] = None,
    force: bool = False
):
    """
    Recompute candidate embeddings in chunks.

    Args:
        candidate_ids: Candidates to process. If None, processes all candidates.
        force: Whether to regenerate existing embeddings.

    Returns:
        Dict with processing statistics
    """
    from ats.models import Candidate
    from .exceptions import UpstreamServiceError
    from .services import EmbeddingService, VectorStorageService

    logger.info(f"Starting candidate embedding update. Candidates: {candidate_ids}, Force: {force}")

    candidates_qs = Candidate.objects.all()
    if candidate_ids:
        candidates_qs = candidates_qs.filter(pk__in=candidate_ids)
    if not force:
        candidates_qs = candidates_qs.without_embeddings()
    candidates = list(candidates_qs.order_by('created_at'))

    embedding_service = EmbeddingService()
    storage = VectorStorageService()
    stats = {
        'total': len(candidates),
        'processed': 0,
        'skipped': 0,
        'errors': []
    }

    for start in range(0, len(candidates), EMBEDDING_CHUNK_SIZE):
        chunk = []
        for candidate in candidates[start:start + EMBEDDING_CHUNK_SIZE]:
            text = embedding_service.build_candidate_text(candidate)
            if text:
                chunk.append((candidate, text))
            else:
                stats['skipped'] += 1

        if not chunk:
            continue

        try:
            results = embedding_service.embed_batch([text for _, text in chunk])
            stats['processed'] += storage.batch_update_candidate_embeddings(
                [(candidate.pk, result.vector) for (candidate, _), result in zip(chunk, results)]
            )
        except (UpstreamServiceError, MatchingValidationError) as e:
            logger.warning(f"Error updating embeddings for chunk starting at {start}: {e}")
            stats['errors'].append({
                'candidate_ids': [str(candidate.pk) for candidate, _ in chunk],
                'error': str(e)
            })

    logger.info(f"Candidate embedding update completed. Stats: {stats}")
    return stats
