"""
AI Matching Services Package

This package contains the service classes used by the matching engine:
- EmbeddingService: OpenAI embeddings with caching and retries
- VectorStorageService: candidate embedding storage and similarity search
- MatchExplanationService: LLM-assisted match explanations
"""

from .embeddings import EmbeddingResult, EmbeddingService, get_embedding_service
from .explanations import ExplanationOptions, MatchExplanationService, get_explanation_service
from .vector_storage import EmbeddingStats, SimilarCandidate, VectorStorageService

__all__ = [
    'EmbeddingResult',
    'EmbeddingService',
    'get_embedding_service',
    'ExplanationOptions',
    'MatchExplanationService',
    'get_explanation_service',
    'EmbeddingStats',
    'SimilarCandidate',
    'VectorStorageService',
]
