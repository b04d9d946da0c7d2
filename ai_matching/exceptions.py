"""
AI Matching Exceptions

Error taxonomy for the matching engine:
- MatchingNotFoundError: a candidate, job variant or application is missing.
  Deterministic, surfaced to the caller.
- UpstreamServiceError: the embeddings or chat API kept failing after the
  local retry loop. Surfaced so the job queue can apply its own retries.
- MalformedResponseError: the chat API returned something that is not the
  requested JSON. Never leaves the explanation service.
- MatchingValidationError: bad input data such as vectors of mismatched
  dimensions. Fails fast and is never retried.
"""

from typing import Optional

from django.core.exceptions import ObjectDoesNotExist


class MatchingNotFoundError(ObjectDoesNotExist):
    """Base class for records the matching engine could not resolve."""

    entity = 'Record'

    def __init__(self, object_id=None, message: str = None):
        self.object_id = object_id
        self.message = message or f"{self.entity} {object_id} not found"
        super().__init__(self.message)

    def __str__(self):
        return self.message


class CandidateNotFound(MatchingNotFoundError):
    entity = 'Candidate'


class JobVariantNotFound(MatchingNotFoundError):
    entity = 'Job variant'


class ApplicationNotFound(MatchingNotFoundError):
    entity = 'Application'


class UpstreamServiceError(Exception):
    """
    Raised when an OpenAI call still fails after all local attempts.

    Attributes:
        service: Logical name of the call, e.g. ``'embedding'``.
        attempts: Number of attempts made.
        status_code: HTTP status of the last failure, when known.
    """

    def __init__(
        self,
        service: str,
        attempts: int,
        status_code: Optional[int] = None,
        message: str = None
    ):
        self.service = service
        self.attempts = attempts
        self.status_code = status_code
        self.message = message or (
            f"{service} call failed after {attempts} attempt(s)"
            + (f" (HTTP {status_code})" if status_code else '')
        )
        super().__init__(self.message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class MalformedResponseError(Exception):
    """The chat API response could not be parsed into the requested shape."""


class MatchingValidationError(ValueError):
    """Invalid input to a matching computation."""


class VectorDimensionError(MatchingValidationError):
    """Two vectors, or a vector and the configured dimension, disagree in length."""

    def __init__(self, expected: int, actual: int, message: str = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Vector dimension mismatch: expected {expected}, got {actual}"
        )


class EmbeddingInputError(MatchingValidationError):
    """Text handed to the embedding client is empty."""
