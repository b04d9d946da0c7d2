"""
Embedding Service for AI Matching

Implements text embedding generation using the OpenAI embeddings API.
Builds the canonical texts embedded for candidates, job requirement sets and
single skills, and includes a caching layer to reduce API calls.
"""
import hashlib
import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.conf import settings
from django.core.cache import cache

from ai_matching.exceptions import EmbeddingInputError, VectorDimensionError
from ai_matching.services.openai_client import call_with_retry, get_openai_client

logger = logging.getLogger(__name__)

# text-embedding-3-large input limit
MAX_INPUT_TOKENS = 8191
CHARS_PER_TOKEN = 4


@dataclass
class EmbeddingResult:
    """Result of embedding generation."""
    vector: List[float]
    text: str
    token_count: int = 0
    model: str = ''
    cached: bool = False

    @property
    def embedding(self) -> List[float]:
        """Alias for vector for convenience."""
        return self.vector

    @property
    def dimension(self) -> int:
        return len(self.vector)


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def experience_line(entry: dict) -> str:
    """``<title> at <company>: <description>``; empty when title and company are missing."""
    title = (entry.get('job_title') or '').strip()
    company = (entry.get('company') or '').strip()
    if not (title or company):
        return ''
    line = f"{title} at {company}" if title and company else title or company
    if entry.get('description'):
        line = f"{line}: {entry['description']}"
    return line


def truncate_text(text: str, max_tokens: int = MAX_INPUT_TOKENS) -> str:
    """Cut ``text`` so its estimated token count fits ``max_tokens``."""
    if estimate_tokens(text) <= max_tokens:
        return text
    truncated = text[:max_tokens * CHARS_PER_TOKEN]
    logger.warning(
        f"Text truncated from {len(text)} to {len(truncated)} characters"
    )
    return truncated


class EmbeddingService:
    """
    Service for generating text embeddings with OpenAI.

    Every returned vector has the system-wide dimensionality
    ``AI_MATCHING_EMBEDDING_DIMENSION``; it is requested from the API and
    checked on the way back. Results are cached in the Django cache.

    Usage:
        service = EmbeddingService()
        result = service.embed("Software engineer with Python experience")
        print(f"Embedding dimension: {result.dimension}")
    """

    CACHE_PREFIX = 'ai_embedding:v3:'
    BATCH_SIZE = 10

    def __init__(self, client=None):
        self._client = client
        self.model = getattr(settings, 'OPENAI_EMBEDDING_MODEL', 'text-embedding-3-large')
        self.dimension = getattr(settings, 'AI_MATCHING_EMBEDDING_DIMENSION', 3072)
        self.cache_ttl = getattr(settings, 'AI_MATCHING_CACHE_TTL', 86400 * 7)
        self.batch_pause = getattr(settings, 'AI_MATCHING_BATCH_PAUSE', 0.1)

    @property
    def client(self):
        """Lazy-load OpenAI client."""
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    # ------------------------------------------------------------------
    # Single embeddings
    # ------------------------------------------------------------------

    def embed(self, text: str, use_cache: bool = True) -> EmbeddingResult:
        """
        Generate embedding for text.

        Args:
            text: Text to embed (truncated if it exceeds the token limit)
            use_cache: Whether to use cached embeddings

        Returns:
            EmbeddingResult with the vector and the text actually embedded

        Raises:
            EmbeddingInputError: text is empty
            UpstreamServiceError: the API kept failing
            VectorDimensionError: the API returned a vector of the wrong length
        """
        if not text or not text.strip():
            raise EmbeddingInputError('Cannot embed empty text')

        text = truncate_text(text.strip())

        if use_cache:
            cached = self._get_cached(text)
            if cached:
                return cached

        response = call_with_retry(
            lambda: self.client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimension,
                encoding_format='float',
            ),
            service='embedding',
        )

        vector = list(response.data[0].embedding)
        self.validate_vector(vector)

        usage = getattr(response, 'usage', None)
        token_count = getattr(usage, 'total_tokens', None) or estimate_tokens(text)

        logger.debug(
            f"Generated embedding with {len(vector)} dimensions, {token_count} tokens"
        )

        result = EmbeddingResult(
            vector=vector,
            text=text,
            token_count=token_count,
            model=self.model,
        )
        if use_cache:
            self._cache_result(result)
        return result

    def embed_skill(self, skill: str) -> EmbeddingResult:
        """Embed a single skill or requirement term verbatim."""
        return self.embed(skill)

    def embed_candidate(self, candidate) -> EmbeddingResult:
        """Embed the canonical profile text of a candidate."""
        return self.embed(self.build_candidate_text(candidate))

    def embed_job_requirements(
        self,
        requirements: Iterable,
        job_title: Optional[str] = None,
        job_description: Optional[str] = None
    ) -> EmbeddingResult:
        """Embed the canonical text of a job's requirement set."""
        return self.embed(
            self.build_job_requirements_text(requirements, job_title, job_description)
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def embed_batch(self, texts: List[str], use_cache: bool = True) -> List[EmbeddingResult]:
        """
        Embed many texts, ``BATCH_SIZE`` concurrent requests at a time.

        Results are returned in input order. A short pause separates chunks
        to stay under the upstream rate limit.
        """
        texts = list(texts)
        if not texts:
            return []

        logger.info(f"Generating embeddings for {len(texts)} texts")
        results: List[EmbeddingResult] = []

        for start in range(0, len(texts), self.BATCH_SIZE):
            chunk = texts[start:start + self.BATCH_SIZE]
            with ThreadPoolExecutor(max_workers=len(chunk)) as executor:
                results.extend(executor.map(lambda t: self.embed(t, use_cache), chunk))

            if start + self.BATCH_SIZE < len(texts) and self.batch_pause > 0:
                time.sleep(self.batch_pause)

        return results

    def embed_skills(self, skills: List[str]) -> List[EmbeddingResult]:
        return self.embed_batch(skills)

    # ------------------------------------------------------------------
    # Canonical texts
    # ------------------------------------------------------------------

    @staticmethod
    def build_candidate_text(candidate) -> str:
        """
        Build the profile text embedded for a candidate.

        Sections (summary, skills, experience) are separated by blank lines;
        empty sections are omitted.
        """
        parts = []

        summary = (candidate.summary or '').strip()
        if summary:
            parts.append(f"Summary: {summary}")

        skills = [s.get('name', '') for s in candidate.skills or [] if s.get('name')]
        if skills:
            parts.append(f"Skills: {', '.join(skills)}")

        experience = [
            line for line in map(experience_line, candidate.work_experience or []) if line
        ]
        if experience:
            parts.append(f"Experience: {'; '.join(experience)}")

        return '\n\n'.join(parts)

    @staticmethod
    def build_job_requirements_text(
        requirements: Iterable,
        job_title: Optional[str] = None,
        job_description: Optional[str] = None
    ) -> str:
        """
        Build the text embedded for a job: optional title and description
        headers, then one line per non-empty requirement category.
        """
        from ats.models import RequirementCategory

        labels = {
            RequirementCategory.MUST: 'Must Have Requirements',
            RequirementCategory.SHOULD: 'Should Have Requirements',
            RequirementCategory.NICE: 'Nice to Have Requirements',
        }

        parts = []
        if job_title:
            parts.append(f"Job Title: {job_title}")
        if job_description:
            parts.append(f"Job Description: {job_description}")

        requirements = list(requirements)
        for category in RequirementCategory:
            descriptions = [r.description for r in requirements if r.category == category]
            if descriptions:
                parts.append(f"{labels[category]}: {', '.join(descriptions)}")

        return '\n\n'.join(parts)

    # ------------------------------------------------------------------
    # Validation and caching
    # ------------------------------------------------------------------

    def validate_vector(self, vector: List[float]) -> List[float]:
        if len(vector) != self.dimension:
            raise VectorDimensionError(self.dimension, len(vector))
        return vector

    def _cache_key(self, text: str) -> str:
        """Generate cache key for text."""
        text_hash = hashlib.sha256(text.encode()).hexdigest()[:32]
        return f"{self.CACHE_PREFIX}{self.model}:{self.dimension}:{text_hash}"

    def _get_cached(self, text: str) -> Optional[EmbeddingResult]:
        """Get cached embedding result."""
        try:
            data = cache.get(self._cache_key(text))
        except Exception as e:
            logger.debug(f"Cache read failed: {e}")
            return None
        if not data or len(data.get('vector') or []) != self.dimension:
            return None
        return EmbeddingResult(
            vector=data['vector'],
            text=text,
            token_count=data.get('token_count', 0),
            model=data.get('model', self.model),
            cached=True,
        )

    def _cache_result(self, result: EmbeddingResult):
        """Cache embedding result."""
        try:
            cache.set(
                self._cache_key(result.text),
                {
                    'vector': result.vector,
                    'token_count': result.token_count,
                    'model': result.model,
                },
                self.cache_ttl
            )
        except Exception as e:
            logger.warning(f"Failed to cache embedding: {e}")


# Singleton instance for convenience
_embedding_service = None


def get_embedding_service() -> EmbeddingService:
    """Get singleton EmbeddingService instance."""
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service
