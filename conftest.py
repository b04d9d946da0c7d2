"""
HireMatch Test Configuration - pytest fixtures and factories

This module provides:
- pytest-django configuration
- factory_boy factories for candidates, the job hierarchy, requirements
  and applications
- FakeEmbeddingService, an offline embedding service returning crafted
  vectors so similarity scores are fully controlled by the test

RUNNING TESTS:
# Run all tests
pytest -v

# Run by app
pytest ats/tests -v
pytest ai_matching/tests -v
"""

import math
import threading
from decimal import Decimal

import pytest
import factory
from factory.django import DjangoModelFactory

from django.conf import settings
from django.core.cache import cache

from ai_matching.exceptions import EmbeddingInputError
from ai_matching.services.embeddings import EmbeddingResult, EmbeddingService
from ai_matching.services.openai_client import reset_openai_client


# ============================================================================
# VECTOR HELPERS
# ============================================================================

def unit_vector(index, dimension=None):
    """Basis vector ``e<index>`` of the configured dimension."""
    dimension = dimension or settings.AI_MATCHING_EMBEDDING_DIMENSION
    vector = [0.0] * dimension
    vector[index] = 1.0
    return vector


def vector_with_similarity(similarity, dimension=None):
    """Unit vector whose cosine similarity to ``e0`` is ``similarity``."""
    dimension = dimension or settings.AI_MATCHING_EMBEDDING_DIMENSION
    vector = [0.0] * dimension
    vector[0] = similarity
    vector[1] = math.sqrt(1 - similarity ** 2)
    return vector


class FakeEmbeddingService(EmbeddingService):
    """
    Embedding service that never calls OpenAI.

    Texts found in ``vectors`` get that vector; otherwise the first
    ``keywords`` entry contained in the text decides; everything else is
    embedded as ``e0``.
    """

    def __init__(self, vectors=None, keywords=None):
        super().__init__(client=object())
        self.vectors = dict(vectors or {})
        self.keywords = dict(keywords or {})
        self.calls = []
        self._lock = threading.Lock()

    def embed(self, text, use_cache=True):
        if not text or not text.strip():
            raise EmbeddingInputError('Cannot embed empty text')
        with self._lock:
            self.calls.append(text)

        vector = self.vectors.get(text)
        if vector is None:
            vector = next(
                (v for keyword, v in self.keywords.items() if keyword in text),
                unit_vector(0, self.dimension),
            )
        return EmbeddingResult(vector=list(vector), text=text, token_count=1, model='fake')


# ============================================================================
# CANDIDATE FACTORIES
# ============================================================================

class CandidateFactory(DjangoModelFactory):
    """Factory for Candidate model: a full-stack JavaScript developer."""

    class Meta:
        model = 'ats.Candidate'

    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    email = factory.Sequence(lambda n: f"candidate{n}@example.com")
    headline = 'Full-Stack Developer'
    summary = 'Full-stack developer building web applications'
    total_experience = Decimal('5.0')
    skills = factory.LazyFunction(lambda: [
        {'name': 'JavaScript', 'years_of_experience': 5, 'proficiency': 'expert'},
        {'name': 'React', 'years_of_experience': 3, 'proficiency': 'advanced'},
        {'name': 'Node.js', 'years_of_experience': 4, 'proficiency': 'advanced'},
    ])
    work_experience = factory.LazyFunction(lambda: [
        {
            'job_title': 'Senior Developer',
            'company': 'Acme',
            'description': 'Built React front ends and Node.js services',
        },
    ])
    education = factory.LazyFunction(lambda: [
        {'degree': 'BSc', 'field_of_study': 'Computer Science', 'institution': 'State University'},
    ])
    skill_embeddings = None


class MainframeCandidateFactory(CandidateFactory):
    """Candidate whose whole profile revolves around COBOL."""

    headline = 'COBOL Programmer'
    summary = 'Mainframe COBOL developer'
    skills = factory.LazyFunction(lambda: [
        {'name': 'COBOL', 'years_of_experience': 10, 'proficiency': 'expert'},
    ])
    work_experience = factory.LazyFunction(lambda: [
        {'job_title': 'COBOL Programmer', 'company': 'Bank', 'description': 'COBOL batch jobs'},
    ])
    education = factory.LazyFunction(list)


# ============================================================================
# JOB FACTORIES
# ============================================================================

class JobFamilyFactory(DjangoModelFactory):
    """Factory for JobFamily model."""

    class Meta:
        model = 'ats.JobFamily'
        django_get_or_create = ('name',)

    name = factory.Sequence(lambda n: f"Job Family {n}")
    description = 'Software engineering roles'


class JobTemplateFactory(DjangoModelFactory):
    """Factory for JobTemplate model."""

    class Meta:
        model = 'ats.JobTemplate'

    job_family = factory.SubFactory(JobFamilyFactory)
    name = 'Frontend Engineer'
    description = 'Builds user interfaces'


class CompanyJobVariantFactory(DjangoModelFactory):
    """Factory for CompanyJobVariant model."""

    class Meta:
        model = 'ats.CompanyJobVariant'

    job_template = factory.SubFactory(JobTemplateFactory)
    custom_title = 'Senior Frontend Engineer'
    custom_description = 'Own the customer-facing web application'
    company_name = 'Acme'
    company_industry = 'Software'
    is_active = True


class RequirementItemFactory(DjangoModelFactory):
    """Factory for RequirementItem model, scoped to a job variant by default."""

    class Meta:
        model = 'ats.RequirementItem'

    description = factory.Sequence(lambda n: f"Requirement {n}")
    category = 'must'
    type = 'skill'
    weight = 5
    alternatives = factory.LazyFunction(list)
    company_job_variant = factory.SubFactory(CompanyJobVariantFactory)


class ApplicationFactory(DjangoModelFactory):
    """Factory for Application model."""

    class Meta:
        model = 'ats.Application'

    candidate = factory.SubFactory(CandidateFactory)
    company_job_variant = factory.SubFactory(CompanyJobVariantFactory)
    status = 'applied'


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def _isolated_services():
    """Fresh cache and OpenAI client for every test."""
    cache.clear()
    reset_openai_client()
    yield
    reset_openai_client()


@pytest.fixture
def candidate_factory(db):
    """Provide CandidateFactory for tests."""
    return CandidateFactory


@pytest.fixture
def job_variant_factory(db):
    """Provide CompanyJobVariantFactory for tests."""
    return CompanyJobVariantFactory


@pytest.fixture
def requirement_factory(db):
    """Provide RequirementItemFactory for tests."""
    return RequirementItemFactory


@pytest.fixture
def application_factory(db):
    """Provide ApplicationFactory for tests."""
    return ApplicationFactory


@pytest.fixture
def candidate(db):
    return CandidateFactory()


@pytest.fixture
def job_variant(db):
    return CompanyJobVariantFactory()


@pytest.fixture
def requirements(job_variant):
    """MUST JavaScript/React, SHOULD Node.js, NICE TypeScript."""
    return [
        RequirementItemFactory(company_job_variant=job_variant, description='JavaScript',
                               category='must', weight=9),
        RequirementItemFactory(company_job_variant=job_variant, description='React',
                               category='must', weight=8),
        RequirementItemFactory(company_job_variant=job_variant, description='Node.js',
                               category='should', weight=7),
        RequirementItemFactory(company_job_variant=job_variant, description='TypeScript',
                               category='nice', weight=5),
    ]


@pytest.fixture
def strong_match_embeddings():
    """Near-1.0 similarity on JavaScript, React and Node.js; none on TypeScript."""
    return FakeEmbeddingService(
        vectors={
            'JavaScript': vector_with_similarity(0.99),
            'React': vector_with_similarity(0.99),
            'Node.js': vector_with_similarity(0.99),
            'TypeScript': unit_vector(1),
        },
        keywords={'COBOL': unit_vector(7)},
    )


@pytest.fixture
def weak_must_embeddings():
    """Similarity forced to 0.3 on both MUST items; strong elsewhere."""
    return FakeEmbeddingService(
        vectors={
            'JavaScript': vector_with_similarity(0.3),
            'React': vector_with_similarity(0.3),
            'Node.js': vector_with_similarity(0.99),
            'TypeScript': vector_with_similarity(0.99),
        },
    )


@pytest.fixture
def offline_openai(settings):
    """No API key configured: explanation falls back to the match result."""
    settings.OPENAI_API_KEY = ''
    reset_openai_client()
    return settings
