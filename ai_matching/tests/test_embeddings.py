"""
Embedding Service Tests

Tests for:
- Canonical candidate and job requirement texts
- Input truncation and validation
- Local retries with exponential backoff on rate limits
- Caching and batch embedding
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from ai_matching.exceptions import EmbeddingInputError, UpstreamServiceError, VectorDimensionError
from ai_matching.services.embeddings import (
    CHARS_PER_TOKEN,
    MAX_INPUT_TOKENS,
    EmbeddingService,
    estimate_tokens,
    experience_line,
    truncate_text,
)
from ats.models import RequirementItem

from conftest import CandidateFactory


DIMENSION = 8


def embedding_response(vector=None, tokens=5):
    return SimpleNamespace(
        data=[SimpleNamespace(embedding=vector or [0.1] * DIMENSION)],
        usage=SimpleNamespace(total_tokens=tokens),
    )


def rate_limit_error():
    request = httpx.Request('POST', 'https://api.openai.com/v1/embeddings')
    return openai.RateLimitError(
        'Rate limit reached',
        response=httpx.Response(429, request=request),
        body=None,
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.embeddings.create.return_value = embedding_response()
    return client


@pytest.fixture
def sleep(mocker):
    return mocker.patch('ai_matching.services.openai_client.time.sleep')


class TestTextHelpers:

    def test_estimate_tokens(self):
        assert estimate_tokens('') == 0
        assert estimate_tokens('abcd') == 1
        assert estimate_tokens('abcde') == 2

    def test_short_text_is_not_truncated(self):
        assert truncate_text('Python developer') == 'Python developer'

    def test_long_text_is_truncated_to_token_limit(self):
        text = 'a' * (MAX_INPUT_TOKENS * CHARS_PER_TOKEN + 100)

        truncated = truncate_text(text)

        assert len(truncated) == MAX_INPUT_TOKENS * CHARS_PER_TOKEN
        assert estimate_tokens(truncated) <= MAX_INPUT_TOKENS

    def test_experience_line(self):
        assert experience_line({'job_title': 'Developer', 'company': 'Acme'}) == 'Developer at Acme'
        assert experience_line(
            {'job_title': 'Developer', 'company': 'Acme', 'description': 'Built APIs'}
        ) == 'Developer at Acme: Built APIs'
        assert experience_line({'company': 'Acme'}) == 'Acme'
        assert experience_line({'description': 'Orphan'}) == ''


@pytest.mark.django_db
class TestCanonicalTexts:

    def test_candidate_text(self):
        candidate = CandidateFactory()

        text = EmbeddingService.build_candidate_text(candidate)

        assert text == (
            'Summary: Full-stack developer building web applications\n\n'
            'Skills: JavaScript, React, Node.js\n\n'
            'Experience: Senior Developer at Acme: Built React front ends and Node.js services'
        )

    def test_candidate_text_omits_empty_sections(self):
        candidate = CandidateFactory(summary='', work_experience=[])

        assert EmbeddingService.build_candidate_text(candidate) == 'Skills: JavaScript, React, Node.js'

    def test_empty_profile_has_no_text(self):
        candidate = CandidateFactory(summary='', skills=[], work_experience=[])

        assert EmbeddingService.build_candidate_text(candidate) == ''

    def test_job_requirements_text_groups_by_category(self):
        requirements = [
            RequirementItem(description='TypeScript', category='nice'),
            RequirementItem(description='JavaScript', category='must'),
            RequirementItem(description='Node.js', category='should'),
            RequirementItem(description='React', category='must'),
        ]

        text = EmbeddingService.build_job_requirements_text(
            requirements, 'Frontend Engineer', 'Build the web app'
        )

        assert text == (
            'Job Title: Frontend Engineer\n\n'
            'Job Description: Build the web app\n\n'
            'Must Have Requirements: JavaScript, React\n\n'
            'Should Have Requirements: Node.js\n\n'
            'Nice to Have Requirements: TypeScript'
        )


class TestEmbed:
    """Tests for EmbeddingService.embed."""

    def test_requests_configured_model_and_dimension(self, client):
        result = EmbeddingService(client=client).embed('Python developer')

        client.embeddings.create.assert_called_once_with(
            model='text-embedding-3-large',
            input='Python developer',
            dimensions=DIMENSION,
            encoding_format='float',
        )
        assert result.dimension == DIMENSION
        assert result.token_count == 5
        assert result.cached is False

    def test_empty_text_is_rejected(self, client):
        with pytest.raises(EmbeddingInputError):
            EmbeddingService(client=client).embed('   ')

        client.embeddings.create.assert_not_called()

    def test_oversized_text_is_truncated(self, client):
        text = 'word ' * (MAX_INPUT_TOKENS * 2)

        result = EmbeddingService(client=client).embed(text)

        sent = client.embeddings.create.call_args.kwargs['input']
        assert len(sent) == MAX_INPUT_TOKENS * CHARS_PER_TOKEN
        assert result.text == sent

    def test_wrong_dimension_is_rejected(self, client):
        client.embeddings.create.return_value = embedding_response([0.1] * 4)

        with pytest.raises(VectorDimensionError) as exc_info:
            EmbeddingService(client=client).embed('Python developer')

        assert exc_info.value.expected == DIMENSION
        assert exc_info.value.actual == 4
        assert client.embeddings.create.call_count == 1

    def test_result_is_cached(self, client):
        service = EmbeddingService(client=client)

        first = service.embed('Python developer')
        second = service.embed('Python developer')

        assert client.embeddings.create.call_count == 1
        assert second.cached is True
        assert second.vector == first.vector

    def test_cache_can_be_bypassed(self, client):
        service = EmbeddingService(client=client)

        service.embed('Python developer', use_cache=False)
        service.embed('Python developer', use_cache=False)

        assert client.embeddings.create.call_count == 2


class TestRetries:
    """Tests for the local retry loop around the embeddings API."""

    def test_rate_limit_backs_off_exponentially(self, client, sleep, settings):
        settings.AI_MATCHING_RETRY_DELAY = 1.0
        client.embeddings.create.side_effect = [
            rate_limit_error(),
            rate_limit_error(),
            embedding_response(),
        ]

        result = EmbeddingService(client=client).embed('Python developer')

        assert result.dimension == DIMENSION
        assert client.embeddings.create.call_count == 3
        assert [call.args[0] for call in sleep.call_args_list] == [1.0, 2.0]

    def test_other_errors_retry_with_fixed_delay(self, client, sleep, settings):
        settings.AI_MATCHING_RETRY_DELAY = 1.0
        client.embeddings.create.side_effect = [
            RuntimeError('connection reset'),
            RuntimeError('connection reset'),
            embedding_response(),
        ]

        EmbeddingService(client=client).embed('Python developer')

        assert [call.args[0] for call in sleep.call_args_list] == [1.0, 1.0]

    def test_gives_up_after_three_attempts(self, client, sleep):
        client.embeddings.create.side_effect = rate_limit_error()

        with pytest.raises(UpstreamServiceError) as exc_info:
            EmbeddingService(client=client).embed('Python developer')

        error = exc_info.value
        assert client.embeddings.create.call_count == 3
        assert error.attempts == 3
        assert error.service == 'embedding'
        assert error.is_rate_limited
        assert isinstance(error.__cause__, openai.RateLimitError)


class TestEmbedBatch:

    def test_empty_batch_makes_no_calls(self, client):
        assert EmbeddingService(client=client).embed_batch([]) == []
        assert EmbeddingService(client=client).embed_skills([]) == []

        client.embeddings.create.assert_not_called()

    def test_results_keep_input_order_across_chunks(self, client):
        def create(**kwargs):
            index = int(kwargs['input'].split()[-1])
            return embedding_response([float(index)] + [0.0] * (DIMENSION - 1))

        client.embeddings.create.side_effect = create
        texts = [f"skill {i}" for i in range(1, 13)]

        results = EmbeddingService(client=client).embed_batch(texts)

        assert [r.text for r in results] == texts
        assert [r.vector[0] for r in results] == [float(i) for i in range(1, 13)]
        assert client.embeddings.create.call_count == 12
