"""
Match Explanation Service

Generates human-readable explanations for candidate-job match results
using the OpenAI chat API, and persists them as MatchExplanation rows.

Provides:
- Strengths, gaps and recommendations rewritten by the chat model
- Per-requirement explanations rewritten by a cheaper model
- A deterministic fallback to the match result itself whenever the model
  is unavailable or keeps failing
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.utils import timezone

from ai_matching.exceptions import ApplicationNotFound, MalformedResponseError, UpstreamServiceError
from ai_matching.services.openai_client import call_with_retry, get_openai_client

logger = logging.getLogger(__name__)

MAX_ITEMS = 5

SUMMARY_SYSTEM_PROMPT = (
    "You are a professional recruitment consultant providing detailed "
    "candidate-job match analysis. Return only valid JSON with your analysis."
)

DETAIL_SYSTEM_PROMPT = (
    "You are a recruitment expert providing detailed requirement analysis. "
    "Be specific, professional, and constructive."
)


@dataclass
class ExplanationOptions:
    include_detailed_analysis: bool = True
    include_recommendations: bool = True
    max_explanation_length: int = 2000


@dataclass
class ExplanationContent:
    """The explanation fields before they are stored."""
    strengths: List[str] = field(default_factory=list)
    gaps: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    detailed_analysis: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_match_result(cls, match_result) -> 'ExplanationContent':
        return cls(
            strengths=list(match_result.strengths),
            gaps=list(match_result.gaps),
            recommendations=list(match_result.recommendations),
            detailed_analysis=[m.to_dict() for m in match_result.detailed_analysis],
        )


class MatchExplanationService:
    """
    Service for generating AI-powered match explanations.

    The deterministic match result is always the starting point; the chat
    model only rewrites it. Any upstream failure falls back to the match
    result unchanged.

    Usage:
        service = MatchExplanationService()
        explanation = service.generate_match_explanation(
            application.id, match_result, candidate, job_variant
        )
        print("Strengths:", explanation.strengths)
    """

    def __init__(self, client=None):
        self._client = client
        self.model = getattr(settings, 'OPENAI_MODEL', 'gpt-4o')
        self.detail_model = getattr(settings, 'OPENAI_DETAIL_MODEL', 'gpt-4o-mini')

    @property
    def client(self):
        """Lazy-load OpenAI client; None when no API key is configured."""
        if self._client is None:
            try:
                self._client = get_openai_client()
            except ImproperlyConfigured as e:
                logger.warning(f"Explanations will use the match result only: {e}")
        return self._client

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def generate_match_explanation(
        self,
        application_id,
        match_result,
        candidate,
        job_variant,
        options: Optional[ExplanationOptions] = None
    ):
        """
        Generate and store the match explanation for an application.

        Re-running for the same application overwrites the stored row.

        Raises:
            ApplicationNotFound: no application with that id
        """
        from ats.models import Application

        if not Application.objects.filter(pk=application_id).exists():
            raise ApplicationNotFound(application_id)

        logger.info(f"Generating match explanation for application {application_id}")
        options = options or ExplanationOptions()
        content = self.build_content(match_result, candidate, job_variant, options)

        explanation = self._save(application_id, match_result, content)
        logger.info(f"Stored match explanation for application {application_id}")
        return explanation

    def update_match_explanation(
        self,
        application_id,
        match_result,
        candidate,
        job_variant,
        options: Optional[ExplanationOptions] = None
    ):
        """Regenerate the explanation, creating it if it does not exist yet."""
        return self.generate_match_explanation(
            application_id, match_result, candidate, job_variant, options
        )

    def get_match_explanation(self, application_id):
        from ai_matching.models import MatchExplanation

        return (
            MatchExplanation.objects
            .select_related('application')
            .filter(application_id=application_id)
            .first()
        )

    def delete_match_explanation(self, application_id) -> int:
        """Delete the explanation of an application. Returns the number of rows removed."""
        from ai_matching.models import MatchExplanation

        deleted, _ = MatchExplanation.objects.filter(application_id=application_id).delete()
        logger.info(f"Deleted {deleted} match explanation(s) for application {application_id}")
        return deleted

    def _save(self, application_id, match_result, content: ExplanationContent):
        from ai_matching.models import MatchExplanation
        from ats.models import RequirementItem

        requirement_ids = [
            item['requirement']['id'] for item in content.detailed_analysis
            if item.get('requirement', {}).get('id')
        ]

        with transaction.atomic():
            explanation, _ = MatchExplanation.objects.update_or_create(
                application_id=application_id,
                defaults={
                    'overall_score': match_result.fit_score,
                    'must_have_score': match_result.breakdown.must_have_score,
                    'should_have_score': match_result.breakdown.should_have_score,
                    'nice_to_have_score': match_result.breakdown.nice_to_have_score,
                    'strengths': content.strengths,
                    'gaps': content.gaps,
                    'recommendations': content.recommendations,
                    'detailed_analysis': content.detailed_analysis,
                },
            )
            if requirement_ids:
                RequirementItem.objects.filter(
                    pk__in=requirement_ids, referenced_at__isnull=True
                ).update(referenced_at=timezone.now())

        return explanation

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def build_content(
        self,
        match_result,
        candidate,
        job_variant,
        options: Optional[ExplanationOptions] = None
    ) -> ExplanationContent:
        """
        Produce the explanation fields without storing them.

        Never raises for upstream problems: a missing client or a call that
        still fails after retries yields the match result's own fields.
        """
        options = options or ExplanationOptions()
        base = ExplanationContent.from_match_result(match_result)

        if not self.client:
            content = base
        else:
            try:
                content = self._enhance(base, match_result, candidate, job_variant, options)
            except UpstreamServiceError as e:
                logger.error(f"AI explanation generation failed, using match result: {e}")
                content = base

        if not options.include_recommendations:
            content.recommendations = []
        return content

    def _enhance(self, base, match_result, candidate, job_variant, options) -> ExplanationContent:
        context = self.build_context(match_result, candidate, job_variant)
        summary = self._request_summary(context, options)

        detailed = base.detailed_analysis
        if options.include_detailed_analysis:
            detailed = self._enhance_detailed_analysis(detailed, candidate)

        return ExplanationContent(
            strengths=summary['strengths'],
            gaps=summary['gaps'],
            recommendations=summary['recommendations'],
            detailed_analysis=detailed,
        )

    def _request_summary(self, context: str, options: ExplanationOptions) -> Dict[str, List[str]]:
        prompt = f"""You are an expert recruitment consultant analyzing a candidate-job match. Based on the provided context, generate a comprehensive, human-readable explanation of the match.

Your task is to:
1. Identify the candidate's key strengths relevant to this position
2. Highlight any significant gaps or missing requirements
3. Provide actionable recommendations for both the candidate and recruiter

Guidelines:
- Be specific and evidence-based in your analysis
- Focus on the most impactful strengths and gaps
- Limit to top {MAX_ITEMS} items per category
- Use positive, constructive language

Return your analysis in the following JSON format:
{{"strengths": ["..."], "gaps": ["..."], "recommendations": ["..."]}}

Context:
{context}"""

        response = call_with_retry(
            lambda: self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                max_tokens=options.max_explanation_length,
                temperature=0.3,
            ),
            service='explanation',
        )

        try:
            return self.parse_summary(self._message_text(response))
        except MalformedResponseError as e:
            logger.error(f"Failed to parse explanation response: {e}")
            return {'strengths': [], 'gaps': [], 'recommendations': []}

    @staticmethod
    def parse_summary(text: str) -> Dict[str, List[str]]:
        """
        Parse the model's JSON answer.

        Fields that are not lists come back empty; lists are capped at five.

        Raises:
            MalformedResponseError: the text is not a JSON object
        """
        try:
            data = json.loads(text or '{}')
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError('Expected a JSON object')

        parsed = {}
        for key in ('strengths', 'gaps', 'recommendations'):
            value = data.get(key)
            parsed[key] = [str(item) for item in value][:MAX_ITEMS] if isinstance(value, list) else []
        return parsed

    def _enhance_detailed_analysis(self, detailed_analysis, candidate) -> List[Dict[str, Any]]:
        candidate_profile = self.build_candidate_profile(candidate)
        enhanced = []
        for item in detailed_analysis:
            enhanced.append({
                **item,
                'explanation': self._enhance_requirement_explanation(item, candidate_profile),
            })
        return enhanced

    def _enhance_requirement_explanation(self, item: Dict[str, Any], candidate_profile: str) -> str:
        requirement = item['requirement']
        status = 'MATCHED' if item['matched'] else 'NOT MATCHED'
        prompt = f"""Analyze how well this candidate meets the specific job requirement and provide a detailed, professional explanation.

REQUIREMENT: {requirement['description']} ({requirement['category'].upper()} requirement, weight: {requirement['weight']}/10)

CANDIDATE PROFILE:
{candidate_profile}

CURRENT MATCH STATUS: {status} ({round(item['confidence'] * 100)}% confidence)
EVIDENCE FOUND: {', '.join(item['evidence']) or 'None'}

Provide a 2-3 sentence explanation that says why the requirement is or isn't met, references specific evidence, and suggests how the candidate could strengthen this area if needed."""

        try:
            response = call_with_retry(
                lambda: self.client.chat.completions.create(
                    model=self.detail_model,
                    messages=[
                        {"role": "system", "content": DETAIL_SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=200,
                    temperature=0.2,
                ),
                service='requirement explanation',
            )
            text = self._message_text(response).strip()
        except (UpstreamServiceError, MalformedResponseError) as e:
            logger.warning(f"Keeping original explanation for '{requirement['description']}': {e}")
            return item['explanation']

        return text or item['explanation']

    @staticmethod
    def _message_text(response) -> str:
        try:
            return response.choices[0].message.content or ''
        except (AttributeError, IndexError, TypeError) as e:
            raise MalformedResponseError(f"Unexpected chat response shape: {e}") from e

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def build_context(self, match_result, candidate, job_variant) -> str:
        lines = []
        for m in match_result.detailed_analysis:
            status = 'MATCHED' if m.matched else 'NOT MATCHED'
            lines.append(
                f"- {m.requirement.description} ({str(m.requirement.category).upper()}): "
                f"{status} ({round(m.confidence * 100)}% confidence)\n"
                f"  Evidence: {', '.join(m.evidence) or 'None found'}"
            )

        return (
            f"CANDIDATE PROFILE:\n{self.build_candidate_profile(candidate)}\n\n"
            f"JOB REQUIREMENTS:\n{self.build_job_profile(job_variant)}\n\n"
            f"MATCH ANALYSIS:\n{self.build_match_summary(match_result)}\n\n"
            f"DETAILED REQUIREMENT ANALYSIS:\n" + '\n'.join(lines)
        ).strip()

    @staticmethod
    def build_candidate_profile(candidate) -> str:
        parts = []
        if candidate.summary:
            parts.append(f"Summary: {candidate.summary}")
        if candidate.total_experience:
            parts.append(f"Total Experience: {candidate.total_experience} years")
        if candidate.skills:
            top_skills = ', '.join(
                f"{s.get('name')} ({s.get('years_of_experience', 0)}y)"
                for s in candidate.skills[:10]
            )
            parts.append(f"Key Skills: {top_skills}")
        if candidate.work_experience:
            recent = ', '.join(
                f"{e.get('job_title', '')} at {e.get('company', '')}"
                for e in candidate.work_experience[:3]
            )
            parts.append(f"Recent Experience: {recent}")
        if candidate.education:
            education = ', '.join(
                f"{e.get('degree', '')} in {e.get('field_of_study', '')}"
                for e in candidate.education
            )
            parts.append(f"Education: {education}")
        return '\n'.join(parts)

    @staticmethod
    def build_job_profile(job_variant) -> str:
        parts = []
        if job_variant.title:
            parts.append(f"Position: {job_variant.title}")
        if job_variant.custom_description:
            parts.append(f"Description: {job_variant.custom_description}")
        if job_variant.company_name:
            parts.append(f"Company: {job_variant.company_name}")
        if job_variant.company_industry:
            parts.append(f"Industry: {job_variant.company_industry}")
        return '\n'.join(parts)

    @staticmethod
    def build_match_summary(match_result) -> str:
        breakdown = match_result.breakdown
        return '\n'.join([
            f"Overall Fit Score: {match_result.fit_score}%",
            f"- Must-Have Requirements: {breakdown.must_have_score}%",
            f"- Should-Have Requirements: {breakdown.should_have_score}%",
            f"- Nice-to-Have Requirements: {breakdown.nice_to_have_score}%",
            "",
            f"Current Strengths: {', '.join(match_result.strengths)}",
            f"Current Gaps: {', '.join(match_result.gaps)}",
            f"Current Recommendations: {', '.join(match_result.recommendations)}",
        ])


# Singleton instance for convenience
_explanation_service = None


def get_explanation_service() -> MatchExplanationService:
    global _explanation_service
    if _explanation_service is None:
        _explanation_service = MatchExplanationService()
    return _explanation_service
