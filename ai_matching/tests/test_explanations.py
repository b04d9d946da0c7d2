"""
Match Explanation Tests

Tests for:
- Deterministic fallback when the chat API is unavailable or failing
- Parsing of the model's JSON answer
- Per-requirement narrative enhancement
- Persistence: upsert, lookup, deletion and requirement snapshots
"""

import json
import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from ai_matching.exceptions import ApplicationNotFound, MalformedResponseError
from ai_matching.matching import MatchingEngine
from ai_matching.models import MatchExplanation
from ai_matching.services import ExplanationOptions, MatchExplanationService
from ats.exceptions import RequirementImmutableError
from ats.models import RequirementItem

from conftest import ApplicationFactory


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def match_result(candidate, job_variant, requirements, strong_match_embeddings):
    return MatchingEngine(embedding_service=strong_match_embeddings).match(
        candidate.pk, job_variant.pk
    )


@pytest.fixture
def application(candidate, job_variant):
    return ApplicationFactory(candidate=candidate, company_job_variant=job_variant)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def failing_client(client):
    client.chat.completions.create.side_effect = RuntimeError('chat API down')
    return client


@pytest.mark.django_db
class TestFallback:
    """The match result is used unchanged whenever the model cannot help."""

    def test_failing_chat_call_falls_back_to_match_result(self, failing_client, match_result,
                                                          candidate, job_variant):
        service = MatchExplanationService(client=failing_client)

        content = service.build_content(match_result, candidate, job_variant)

        assert content.strengths == match_result.strengths
        assert content.gaps == match_result.gaps
        assert content.recommendations == match_result.recommendations
        assert content.detailed_analysis == [m.to_dict() for m in match_result.detailed_analysis]
        assert failing_client.chat.completions.create.call_count == 3

    def test_missing_api_key_falls_back_to_match_result(self, offline_openai, match_result,
                                                        candidate, job_variant):
        service = MatchExplanationService()

        content = service.build_content(match_result, candidate, job_variant)

        assert service.client is None
        assert content.gaps == match_result.gaps

    def test_recommendations_can_be_omitted(self, failing_client, match_result,
                                            candidate, job_variant):
        service = MatchExplanationService(client=failing_client)

        content = service.build_content(
            match_result, candidate, job_variant,
            ExplanationOptions(include_recommendations=False)
        )

        assert content.recommendations == []
        assert content.strengths == match_result.strengths


@pytest.mark.django_db
class TestEnhancement:
    """Explanations rewritten by the chat model."""

    def test_summary_from_model(self, client, match_result, candidate, job_variant):
        client.chat.completions.create.return_value = chat_response(json.dumps({
            'strengths': ['Deep JavaScript expertise'],
            'gaps': ['No TypeScript'],
            'recommendations': ['Pair with a TypeScript mentor'],
        }))
        service = MatchExplanationService(client=client)

        content = service.build_content(
            match_result, candidate, job_variant,
            ExplanationOptions(include_detailed_analysis=False)
        )

        assert content.strengths == ['Deep JavaScript expertise']
        assert content.gaps == ['No TypeScript']
        assert content.recommendations == ['Pair with a TypeScript mentor']
        assert content.detailed_analysis == [m.to_dict() for m in match_result.detailed_analysis]

        call = client.chat.completions.create.call_args
        assert call.kwargs['model'] == service.model
        assert call.kwargs['response_format'] == {'type': 'json_object'}
        assert 'Overall Fit Score: 89%' in call.kwargs['messages'][1]['content']

    def test_invalid_json_yields_empty_lists(self, client, match_result, candidate, job_variant):
        client.chat.completions.create.return_value = chat_response('This is not JSON')
        service = MatchExplanationService(client=client)

        content = service.build_content(
            match_result, candidate, job_variant,
            ExplanationOptions(include_detailed_analysis=False)
        )

        assert content.strengths == []
        assert content.gaps == []
        assert content.recommendations == []

    def test_unexpected_response_shape_yields_empty_lists(self, client, match_result,
                                                          candidate, job_variant):
        client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        service = MatchExplanationService(client=client)

        content = service.build_content(
            match_result, candidate, job_variant,
            ExplanationOptions(include_detailed_analysis=False)
        )

        assert content.strengths == []

    def test_requirement_explanations_from_detail_model(self, client, match_result,
                                                        candidate, job_variant):
        service = MatchExplanationService(client=client)

        def create(**kwargs):
            if kwargs['model'] == service.detail_model:
                return chat_response('Five years of hands-on work.')
            return chat_response('{"strengths": [], "gaps": [], "recommendations": []}')

        client.chat.completions.create.side_effect = create

        content = service.build_content(match_result, candidate, job_variant)

        assert len(content.detailed_analysis) == 4
        assert all(
            item['explanation'] == 'Five years of hands-on work.'
            for item in content.detailed_analysis
        )
        assert content.detailed_analysis[0]['requirement'] == (
            match_result.detailed_analysis[0].requirement_snapshot()
        )

    def test_failed_requirement_explanation_keeps_original(self, client, match_result,
                                                           candidate, job_variant):
        service = MatchExplanationService(client=client)

        def create(**kwargs):
            if kwargs['model'] == service.detail_model:
                raise RuntimeError('timeout')
            return chat_response('{"strengths": ["Solid"], "gaps": [], "recommendations": []}')

        client.chat.completions.create.side_effect = create

        content = service.build_content(match_result, candidate, job_variant)

        assert content.strengths == ['Solid']
        assert [item['explanation'] for item in content.detailed_analysis] == [
            m.explanation for m in match_result.detailed_analysis
        ]


class TestParseSummary:

    def test_caps_lists_and_drops_non_lists(self):
        parsed = MatchExplanationService.parse_summary(json.dumps({
            'strengths': [f"Strength {i}" for i in range(8)],
            'gaps': 'Missing TypeScript',
            'recommendations': [1, 2],
        }))

        assert parsed['strengths'] == [f"Strength {i}" for i in range(5)]
        assert parsed['gaps'] == []
        assert parsed['recommendations'] == ['1', '2']

    def test_missing_fields_are_empty(self):
        assert MatchExplanationService.parse_summary('{}') == {
            'strengths': [], 'gaps': [], 'recommendations': []
        }

    @pytest.mark.parametrize('text', ['not json', '["a", "b"]', '{"strengths": '])
    def test_malformed_text(self, text):
        with pytest.raises(MalformedResponseError):
            MatchExplanationService.parse_summary(text)


@pytest.mark.django_db
class TestPersistence:
    """Stored MatchExplanation rows."""

    def test_generate_stores_explanation(self, failing_client, application, match_result,
                                         candidate, job_variant):
        service = MatchExplanationService(client=failing_client)

        explanation = service.generate_match_explanation(
            application.pk, match_result, candidate, job_variant
        )

        assert explanation.application_id == application.pk
        assert explanation.overall_score == 89
        assert explanation.must_have_score == 99
        assert explanation.should_have_score == 99
        assert explanation.nice_to_have_score == 0
        assert explanation.gaps == ['Would be a bonus: TypeScript']
        assert len(explanation.detailed_analysis) == 4

    def test_regenerating_overwrites(self, failing_client, application, match_result,
                                     candidate, job_variant):
        service = MatchExplanationService(client=failing_client)
        service.generate_match_explanation(application.pk, match_result, candidate, job_variant)

        match_result.fit_score = 50
        service.update_match_explanation(application.pk, match_result, candidate, job_variant)

        assert MatchExplanation.objects.filter(application=application).count() == 1
        assert service.get_match_explanation(application.pk).overall_score == 50

    def test_get_and_delete(self, failing_client, application, match_result,
                            candidate, job_variant):
        service = MatchExplanationService(client=failing_client)
        service.generate_match_explanation(application.pk, match_result, candidate, job_variant)

        assert service.get_match_explanation(application.pk) is not None
        assert service.delete_match_explanation(application.pk) == 1
        assert service.get_match_explanation(application.pk) is None
        assert service.delete_match_explanation(application.pk) == 0

    def test_unknown_application(self, failing_client, match_result, candidate, job_variant):
        service = MatchExplanationService(client=failing_client)

        with pytest.raises(ApplicationNotFound):
            service.generate_match_explanation(uuid.uuid4(), match_result, candidate, job_variant)

        assert failing_client.chat.completions.create.call_count == 0

    def test_snapshot_freezes_requirements(self, failing_client, application, match_result,
                                           candidate, job_variant, requirements):
        service = MatchExplanationService(client=failing_client)

        explanation = service.generate_match_explanation(
            application.pk, match_result, candidate, job_variant
        )

        assert set(explanation.requirement_ids) == {str(r.pk) for r in requirements}
        assert not RequirementItem.objects.filter(
            pk__in=[r.pk for r in requirements], referenced_at__isnull=True
        ).exists()

        requirement = RequirementItem.objects.get(pk=requirements[0].pk)
        requirement.description = 'ECMAScript'
        with pytest.raises(RequirementImmutableError):
            requirement.save()
