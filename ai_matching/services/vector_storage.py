"""
Vector Storage Service

Persists candidate profile embeddings on the candidate row and answers
similarity queries over them.

Similarity search is a linear scan over candidates with a stored vector,
which is adequate for the candidate volumes a single organization holds.
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ai_matching.exceptions import CandidateNotFound, MatchingValidationError, VectorDimensionError

logger = logging.getLogger(__name__)

EmbeddingUpdate = Tuple[object, Sequence[float]]


@dataclass
class SimilarCandidate:
    """A candidate returned by a similarity search."""
    candidate: object
    similarity: float

    @property
    def candidate_id(self):
        return self.candidate.pk


@dataclass
class EmbeddingStats:
    total_candidates: int
    candidates_with_embeddings: int
    embedding_coverage: float


class VectorStorageService:
    """
    Store and search candidate embeddings.

    Usage:
        storage = VectorStorageService()
        storage.store_candidate_embedding(candidate.id, vector)
        for match in storage.find_similar_candidates(job_vector, threshold=0.7):
            print(match.candidate, match.similarity)
    """

    BATCH_SIZE = 10

    def __init__(self):
        self.dimension = getattr(settings, 'AI_MATCHING_EMBEDDING_DIMENSION', 3072)

    @staticmethod
    def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
        """
        Calculate cosine similarity between two vectors.

        Args:
            vec1: First vector
            vec2: Second vector

        Returns:
            Cosine similarity between -1 and 1; 0.0 when either vector has
            zero magnitude

        Raises:
            VectorDimensionError: the vectors differ in length
        """
        if len(vec1) != len(vec2):
            raise VectorDimensionError(len(vec1), len(vec2))

        magnitude1 = math.sqrt(sum(a * a for a in vec1))
        magnitude2 = math.sqrt(sum(b * b for b in vec2))
        if magnitude1 == 0 or magnitude2 == 0:
            return 0.0

        if list(vec1) == list(vec2):
            return 1.0

        dot_product = sum(a * b for a, b in zip(vec1, vec2))
        similarity = dot_product / (magnitude1 * magnitude2)
        return max(-1.0, min(1.0, similarity))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def validate_embedding(self, embedding: Sequence[float]) -> List[float]:
        """Return ``embedding`` as a list of floats of the configured dimension."""
        if embedding is None or isinstance(embedding, (str, bytes)):
            raise MatchingValidationError('Embedding must be a sequence of numbers')
        try:
            vector = [float(value) for value in embedding]
        except (TypeError, ValueError) as e:
            raise MatchingValidationError(f'Embedding must be a sequence of numbers: {e}') from e
        if len(vector) != self.dimension:
            raise VectorDimensionError(self.dimension, len(vector))
        if not all(math.isfinite(value) for value in vector):
            raise MatchingValidationError('Embedding contains non-finite values')
        return vector

    def store_candidate_embedding(self, candidate_id, embedding: Sequence[float]):
        """
        Store (or overwrite) a candidate's profile embedding.

        Returns:
            The updated Candidate

        Raises:
            CandidateNotFound: no candidate with that id
            VectorDimensionError: the vector has the wrong length
        """
        from ats.models import Candidate

        vector = self.validate_embedding(embedding)
        try:
            candidate = Candidate.objects.get(pk=candidate_id)
        except Candidate.DoesNotExist:
            raise CandidateNotFound(candidate_id)

        candidate.skill_embeddings = vector
        candidate.embeddings_updated_at = timezone.now()
        candidate.save(update_fields=['skill_embeddings', 'embeddings_updated_at', 'updated_at'])

        logger.debug(f"Stored embedding for candidate {candidate_id}")
        return candidate

    def batch_update_candidate_embeddings(
        self,
        updates: Union[dict, Iterable[EmbeddingUpdate]]
    ) -> int:
        """
        Store many embeddings, ``BATCH_SIZE`` rows per transaction.

        Args:
            updates: ``{candidate_id: vector}`` or ``(candidate_id, vector)`` pairs

        Returns:
            Number of candidate rows written; unknown ids are skipped
        """
        from ats.models import Candidate

        if isinstance(updates, dict):
            updates = updates.items()
        validated = [
            (candidate_id, self.validate_embedding(vector))
            for candidate_id, vector in updates
        ]

        written = 0
        for start in range(0, len(validated), self.BATCH_SIZE):
            chunk = validated[start:start + self.BATCH_SIZE]
            now = timezone.now()
            with transaction.atomic():
                for candidate_id, vector in chunk:
                    written += Candidate.objects.filter(pk=candidate_id).update(
                        skill_embeddings=vector,
                        embeddings_updated_at=now,
                        updated_at=now,
                    )

        logger.info(f"Batch updated embeddings for {written}/{len(validated)} candidates")
        return written

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_similar_candidates(
        self,
        target_embedding: Sequence[float],
        threshold: float = 0.7,
        limit: int = 10,
        exclude_job_variant_id=None
    ) -> List[SimilarCandidate]:
        """
        Rank candidates by similarity to ``target_embedding``.

        Candidates without a vector are skipped, as are (with a warning)
        candidates whose stored vector has a different dimension.

        Args:
            target_embedding: Query vector of the configured dimension
            threshold: Minimum similarity to include
            limit: Maximum number of results
            exclude_job_variant_id: Skip candidates who applied to this job variant

        Returns:
            Results sorted by similarity, highest first
        """
        from ats.models import Candidate

        target = self.validate_embedding(target_embedding)

        queryset = Candidate.objects.with_embeddings()
        if exclude_job_variant_id is not None:
            queryset = queryset.excluding_applicants_to(exclude_job_variant_id)

        results = []
        for candidate in queryset.iterator(chunk_size=500):
            stored = candidate.skill_embeddings
            if not stored:
                continue
            if len(stored) != self.dimension:
                logger.warning(
                    f"Skipping candidate {candidate.pk}: stored embedding has "
                    f"{len(stored)} dimensions, expected {self.dimension}"
                )
                continue

            similarity = self.cosine_similarity(target, stored)
            if similarity >= threshold:
                results.append(SimilarCandidate(candidate=candidate, similarity=similarity))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def find_candidates_for_job(
        self,
        job_embedding: Sequence[float],
        job_variant_id,
        threshold: float = 0.6,
        limit: int = 50
    ) -> List[SimilarCandidate]:
        """Rank candidates for a job, excluding those who already applied to it."""
        return self.find_similar_candidates(
            job_embedding,
            threshold=threshold,
            limit=limit,
            exclude_job_variant_id=job_variant_id,
        )

    def get_embedding_stats(self) -> EmbeddingStats:
        from ats.models import Candidate

        total = Candidate.objects.count()
        with_embeddings = Candidate.objects.with_embeddings().count()
        coverage = round(with_embeddings / total * 100, 2) if total else 0.0

        return EmbeddingStats(
            total_candidates=total,
            candidates_with_embeddings=with_embeddings,
            embedding_coverage=coverage,
        )

    def has_candidate_embeddings(self, candidate_id) -> bool:
        from ats.models import Candidate

        return Candidate.objects.with_embeddings().filter(pk=candidate_id).exists()

    def get_candidate_with_embeddings(self, candidate_id):
        """Return the candidate if it has a stored vector, else None."""
        from ats.models import Candidate

        return Candidate.objects.with_embeddings().filter(pk=candidate_id).first()
