"""
Core Matching Algorithms

This module scores a candidate against a job's categorized requirements:
- per-requirement confidence from embedding similarity, with a keyword
  overlap boost for inconclusive similarities
- weighted MUST / SHOULD / NICE category scores and the overall fit score
- strengths, gaps and recommendations derived from the per-requirement
  analysis
- candidate discovery for a job through the vector store
"""

import logging
import math
import re
from dataclasses import dataclass, field, replace
from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List, Optional, Sequence

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ats.models import Candidate, CompanyJobVariant, RequirementCategory, RequirementItem

from .exceptions import CandidateNotFound, JobVariantNotFound
from .services.embeddings import EmbeddingService, experience_line, get_embedding_service
from .services.vector_storage import VectorStorageService

logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

KEYWORD_BOOST_FACTOR = 0.8
FUZZY_MATCH_RATIO = 0.8
MAX_EVIDENCE = 3
MAX_INSIGHTS = 5

STOP_WORDS = frozenset([
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of',
    'with', 'by', 'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have',
    'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could', 'should',
    'may', 'might', 'can', 'must', 'shall', 'experience', 'knowledge',
    'skills', 'ability', 'proficiency', 'understanding',
])

GAP_PREFIXES = {
    RequirementCategory.MUST: 'Missing',
    RequirementCategory.SHOULD: 'Missing preferred',
    RequirementCategory.NICE: 'Would be a bonus',
}

REMEDIATIONS = {
    RequirementCategory.MUST: 'Consider training or certification in {}',
    RequirementCategory.SHOULD: 'Gain hands-on experience with {}',
    RequirementCategory.NICE: 'Exposure to {} would strengthen the profile',
}

CATEGORY_ORDER = {category: index for index, category in enumerate(RequirementCategory)}


def validate_category_weights(weights: Optional[Dict[str, float]] = None) -> Dict[str, float]:
    """
    Check the MUST / SHOULD / NICE weight table.

    The table must name every requirement category exactly once, hold
    non-negative numbers and sum to 1.

    Raises:
        ImproperlyConfigured: the table is invalid
    """
    if weights is None:
        weights = getattr(settings, 'AI_MATCHING_CATEGORY_WEIGHTS', None)
    if not isinstance(weights, dict):
        raise ImproperlyConfigured('AI_MATCHING_CATEGORY_WEIGHTS must be a dict')

    expected = set(RequirementCategory.values)
    if set(weights) != expected:
        raise ImproperlyConfigured(
            f"AI_MATCHING_CATEGORY_WEIGHTS must define exactly {sorted(expected)}, "
            f"got {sorted(weights)}"
        )
    for category, weight in weights.items():
        if not isinstance(weight, (int, float)) or weight < 0:
            raise ImproperlyConfigured(
                f"Weight for category '{category}' must be a non-negative number"
            )
    if not math.isclose(sum(weights.values()), 1.0, abs_tol=1e-6):
        raise ImproperlyConfigured('AI_MATCHING_CATEGORY_WEIGHTS must sum to 1')

    return {RequirementCategory(category): float(weight) for category, weight in weights.items()}


# ============================================================================
# Keyword helpers
# ============================================================================

def extract_keywords(text: str) -> List[str]:
    """Lowercase words longer than two characters that are not stop words."""
    return [
        word for word in re.split(r'\W+', (text or '').lower())
        if len(word) > 2 and word not in STOP_WORDS
    ]


def keyword_match_score(candidate_text: str, requirement_text: str) -> float:
    """
    Fraction of requirement keywords found in the candidate text.

    A keyword is found when a candidate word contains it, is contained by it,
    or is more than 80% similar by sequence matching.
    """
    requirement_words = extract_keywords(requirement_text)
    if not requirement_words:
        return 0.0
    candidate_words = set(extract_keywords(candidate_text))

    matches = 0
    for req_word in requirement_words:
        if any(
            req_word in cand_word
            or cand_word in req_word
            or SequenceMatcher(None, cand_word, req_word).ratio() > FUZZY_MATCH_RATIO
            for cand_word in candidate_words
        ):
            matches += 1
    return matches / len(requirement_words)


def _round_score(value: float) -> int:
    """Round half up and clamp to [0, 100]."""
    return int(min(100, max(0, math.floor(value + 0.5))))


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


# ============================================================================
# Results
# ============================================================================

@dataclass
class ScoreBreakdown:
    must_have_score: int = 100
    should_have_score: int = 100
    nice_to_have_score: int = 100

    def to_dict(self) -> Dict[str, int]:
        return {
            'must_have_score': self.must_have_score,
            'should_have_score': self.should_have_score,
            'nice_to_have_score': self.nice_to_have_score,
        }


@dataclass
class RequirementMatch:
    """How well a candidate meets one requirement."""
    requirement: RequirementItem
    matched: bool
    confidence: float
    evidence: List[str] = field(default_factory=list)
    explanation: str = ''

    def requirement_snapshot(self) -> Dict[str, Any]:
        requirement = self.requirement
        return {
            'id': str(requirement.pk) if requirement.pk else None,
            'description': requirement.description,
            'category': str(requirement.category),
            'type': str(requirement.type),
            'weight': requirement.weight,
            'alternatives': list(requirement.alternatives or []),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'requirement': self.requirement_snapshot(),
            'matched': self.matched,
            'confidence': round(self.confidence, 4),
            'evidence': list(self.evidence),
            'explanation': self.explanation,
        }


@dataclass
class MatchResult:
    """Transient output of one candidate / job matching computation."""
    candidate_id: Any
    job_variant_id: Any
    fit_score: int
    breakdown: ScoreBreakdown
    strengths: List[str] = field(default_factory=list)
    gaps: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    detailed_analysis: List[RequirementMatch] = field(default_factory=list)

    def without_detailed_analysis(self) -> 'MatchResult':
        return replace(self, detailed_analysis=[])

    def to_dict(self, include_detailed_analysis: bool = True) -> Dict[str, Any]:
        data = {
            'candidate_id': str(self.candidate_id),
            'job_variant_id': str(self.job_variant_id) if self.job_variant_id else None,
            'fit_score': self.fit_score,
            'breakdown': self.breakdown.to_dict(),
            'strengths': list(self.strengths),
            'gaps': list(self.gaps),
            'recommendations': list(self.recommendations),
        }
        if include_detailed_analysis:
            data['detailed_analysis'] = [m.to_dict() for m in self.detailed_analysis]
        return data


@dataclass
class BatchMatchOutcome:
    results: List[MatchResult]
    total: int
    processed: int
    failed: int


@dataclass
class MatchingStats:
    total_candidates: int
    candidates_with_embeddings: int
    average_fit_score: float
    score_distribution: Dict[str, int]


# ============================================================================
# Engine
# ============================================================================

class MatchingEngine:
    """
    Scores candidates against company job variants.

    Usage:
        engine = MatchingEngine()
        result = engine.match(candidate.id, job_variant.id)
        print(result.fit_score, result.breakdown.must_have_score)

        for result in engine.find_matching_candidates(job_variant.id, min_fit_score=80):
            print(result.candidate_id, result.fit_score)
    """

    POOL_SIZE_FACTOR = 2
    BATCH_SIZE = 5

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        vector_storage: Optional[VectorStorageService] = None
    ):
        self.embedding_service = embedding_service or get_embedding_service()
        self.vector_storage = vector_storage or VectorStorageService()
        self.match_threshold = getattr(settings, 'AI_MATCHING_MATCH_THRESHOLD', 0.7)
        self.keyword_floor = getattr(settings, 'AI_MATCHING_KEYWORD_FLOOR', 0.5)
        self.pool_threshold = getattr(settings, 'AI_MATCHING_CANDIDATE_POOL_THRESHOLD', 0.5)
        self.category_weights = validate_category_weights()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def get_candidate(self, candidate_id) -> Candidate:
        try:
            return Candidate.objects.get(pk=candidate_id)
        except Candidate.DoesNotExist:
            raise CandidateNotFound(candidate_id)

    def get_job_variant(self, job_variant_id) -> CompanyJobVariant:
        try:
            return CompanyJobVariant.objects.select_related(
                'job_template', 'job_template__job_family'
            ).get(pk=job_variant_id)
        except CompanyJobVariant.DoesNotExist:
            raise JobVariantNotFound(job_variant_id)

    def get_effective_requirements(self, job_variant: CompanyJobVariant) -> List[RequirementItem]:
        """
        Requirements inherited by a job variant.

        Family requirements come first, then template, then variant ones.
        When two scopes share a description (case-insensitive) the most
        specific scope wins.
        """
        scopes = []
        template = job_variant.job_template
        if template is not None:
            if template.job_family_id:
                scopes.append(RequirementItem.objects.filter(job_family_id=template.job_family_id))
            scopes.append(RequirementItem.objects.filter(job_template=template))
        scopes.append(RequirementItem.objects.filter(company_job_variant=job_variant))

        effective: Dict[str, RequirementItem] = {}
        for queryset in scopes:
            for requirement in queryset.order_by('created_at', 'id'):
                effective[requirement.description.strip().lower()] = requirement
        return list(effective.values())

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def match(self, candidate_id, job_variant_id) -> MatchResult:
        """
        Match a single candidate against a job variant.

        Raises:
            CandidateNotFound, JobVariantNotFound
            UpstreamServiceError: embeddings could not be generated
        """
        logger.info(f"Matching candidate {candidate_id} to job {job_variant_id}")

        candidate = self.get_candidate(candidate_id)
        job_variant = self.get_job_variant(job_variant_id)
        requirements = self.get_effective_requirements(job_variant)

        return self.score(candidate, requirements, job_variant.pk)

    def find_matching_candidates(
        self,
        job_variant_id,
        min_fit_score: int = 60,
        max_results: int = 50,
        include_explanation: bool = False
    ) -> List[MatchResult]:
        """
        Find the best matching candidates for a job variant.

        The vector store supplies a pool of ``2 * max_results`` similar
        candidates (excluding existing applicants); each is scored in full and
        only those with ``fit_score >= min_fit_score`` are returned, best first.
        """
        logger.info(f"Finding matching candidates for job {job_variant_id}")

        job_variant = self.get_job_variant(job_variant_id)
        requirements = self.get_effective_requirements(job_variant)

        job_text = self.embedding_service.build_job_requirements_text(
            requirements, job_variant.title, job_variant.description
        )
        if not job_text.strip():
            logger.warning(f"Job {job_variant_id} has no text to search with")
            return []
        job_embedding = self.embedding_service.embed(job_text)

        pool = self.vector_storage.find_candidates_for_job(
            job_embedding.vector,
            job_variant.pk,
            threshold=self.pool_threshold,
            limit=max_results * self.POOL_SIZE_FACTOR,
        )

        results = []
        for similar in pool:
            result = self.score(similar.candidate, requirements, job_variant.pk)
            if result.fit_score >= min_fit_score:
                results.append(result)

        results.sort(key=lambda r: r.fit_score, reverse=True)
        results = results[:max_results]
        if not include_explanation:
            results = [r.without_detailed_analysis() for r in results]

        logger.info(f"Found {len(results)} matching candidates for job {job_variant_id}")
        return results

    def batch_match_candidates(
        self,
        job_variant_id,
        candidate_ids: Sequence,
        include_explanation: bool = False
    ) -> BatchMatchOutcome:
        """
        Score several candidates against one job variant.

        Candidates are scored ``BATCH_SIZE`` at a time; the texts of a chunk
        are embedded in one ``embed_batch`` call, which bounds the concurrent
        upstream requests. Unknown candidates and scoring failures are counted
        as failed rather than aborting the batch.
        """
        job_variant = self.get_job_variant(job_variant_id)
        requirements = self.get_effective_requirements(job_variant)

        candidate_ids = list(candidate_ids)
        candidates = Candidate.objects.in_bulk([str(cid) for cid in candidate_ids])
        candidates = {str(pk): candidate for pk, candidate in candidates.items()}

        results: List[MatchResult] = []
        failed = 0

        known = []
        for candidate_id in candidate_ids:
            candidate = candidates.get(str(candidate_id))
            if candidate is None:
                logger.warning(f"Batch match: candidate {candidate_id} not found")
                failed += 1
            else:
                known.append(candidate)

        for start in range(0, len(known), self.BATCH_SIZE):
            chunk = known[start:start + self.BATCH_SIZE]
            texts = [
                text for candidate in chunk
                for text in self.scoring_texts(candidate, requirements)
            ]
            try:
                vectors = self._embed_unique(texts) if requirements else {}
            except Exception as e:
                logger.error(
                    f"Batch match failed to embed candidates "
                    f"{[str(c.pk) for c in chunk]}: {e}"
                )
                failed += len(chunk)
                continue

            for candidate in chunk:
                try:
                    result = self.score(candidate, requirements, job_variant.pk, vectors=vectors)
                except Exception as e:
                    logger.error(f"Batch match failed for candidate {candidate.pk}: {e}")
                    failed += 1
                    continue
                if not include_explanation:
                    result = result.without_detailed_analysis()
                results.append(result)

        logger.info(
            f"Batch matched {len(results)}/{len(candidate_ids)} candidates "
            f"for job {job_variant_id} ({failed} failed)"
        )
        return BatchMatchOutcome(
            results=results,
            total=len(candidate_ids),
            processed=len(results),
            failed=failed,
        )

    def get_matching_stats(self, job_variant_id) -> MatchingStats:
        """Fit-score statistics over the applications to a job variant."""
        from ats.models import Application

        job_variant = self.get_job_variant(job_variant_id)
        applications = Application.objects.for_job_variant(job_variant.pk)

        summary = applications.fit_score_summary()
        average = summary['average']

        return MatchingStats(
            total_candidates=applications.count(),
            candidates_with_embeddings=applications.filter(
                candidate__in=Candidate.objects.with_embeddings()
            ).count(),
            average_fit_score=round(float(average), 2) if average is not None else 0.0,
            score_distribution={
                'excellent': summary['excellent'],
                'good': summary['good'],
                'fair': summary['fair'],
                'poor': summary['poor'],
            },
        )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(
        self,
        candidate: Candidate,
        requirements: Iterable[RequirementItem],
        job_variant_id=None,
        vectors: Optional[Dict[str, List[float]]] = None
    ) -> MatchResult:
        """
        Score a loaded candidate against a list of requirements.

        Performs no database access, so it is safe to call from worker threads.
        ``vectors`` may carry precomputed embeddings keyed by text; the texts
        of ``scoring_texts`` are embedded here otherwise.
        """
        requirements = list(requirements)
        if not requirements:
            return MatchResult(
                candidate_id=candidate.pk,
                job_variant_id=job_variant_id,
                fit_score=100,
                breakdown=ScoreBreakdown(),
            )

        signals = self.candidate_signals(candidate)
        requirement_texts = {
            requirement.pk or id(requirement): self.requirement_texts(requirement)
            for requirement in requirements
        }
        if vectors is None:
            vectors = self._embed_unique(self.scoring_texts(candidate, requirements))
        signal_vectors = [vectors[text] for text in signals]
        search_text = self.candidate_search_text(candidate)

        analysis = []
        for requirement in requirements:
            texts = requirement_texts[requirement.pk or id(requirement)]
            confidence = self.requirement_confidence(
                [vectors[text] for text in texts], signal_vectors, texts, search_text
            )
            matched = confidence >= self.match_threshold
            evidence = self.find_evidence(candidate, requirement)
            analysis.append(RequirementMatch(
                requirement=requirement,
                matched=matched,
                confidence=confidence,
                evidence=evidence,
                explanation=self.explain_requirement(requirement, matched, confidence, evidence),
            ))

        category_scores = self.category_scores(analysis)
        fit_score = sum(
            self.category_weights[category] * category_scores[category]
            for category in RequirementCategory
        )
        strengths, gaps, recommendations = self.extract_insights(analysis)

        return MatchResult(
            candidate_id=candidate.pk,
            job_variant_id=job_variant_id,
            fit_score=_round_score(fit_score),
            breakdown=ScoreBreakdown(
                must_have_score=_round_score(category_scores[RequirementCategory.MUST]),
                should_have_score=_round_score(category_scores[RequirementCategory.SHOULD]),
                nice_to_have_score=_round_score(category_scores[RequirementCategory.NICE]),
            ),
            strengths=strengths,
            gaps=gaps,
            recommendations=recommendations,
            detailed_analysis=analysis,
        )

    def requirement_confidence(
        self,
        requirement_vectors: List[List[float]],
        signal_vectors: List[List[float]],
        requirement_texts: List[str],
        candidate_search_text: str
    ) -> float:
        """
        Best similarity between any requirement text and any candidate signal.

        A similarity in the inconclusive band ``[keyword_floor, threshold)``
        may be raised by keyword overlap, scaled by ``KEYWORD_BOOST_FACTOR``.
        """
        similarity = 0.0
        for req_vector in requirement_vectors:
            for signal_vector in signal_vectors:
                similarity = max(
                    similarity,
                    self.vector_storage.cosine_similarity(req_vector, signal_vector),
                )
        confidence = _clamp_unit(similarity)

        if self.keyword_floor <= confidence < self.match_threshold:
            keyword_score = max(
                keyword_match_score(candidate_search_text, text) for text in requirement_texts
            )
            confidence = max(confidence, keyword_score * KEYWORD_BOOST_FACTOR)

        return _clamp_unit(confidence)

    def category_scores(self, analysis: List[RequirementMatch]) -> Dict[RequirementCategory, float]:
        """
        Weighted share of each category's requirements that is met, 0-100.

        A category without requirements scores 100.
        """
        scores = {}
        for category in RequirementCategory:
            items = [m for m in analysis if m.requirement.category == category]
            total_weight = sum(m.requirement.weight for m in items)
            if not items or total_weight <= 0:
                scores[category] = 100.0
                continue
            earned = sum(
                m.confidence * m.requirement.weight for m in items if m.matched
            )
            scores[category] = earned / total_weight * 100
        return scores

    def extract_insights(self, analysis: List[RequirementMatch]):
        """
        Strengths, gaps and recommendations, at most five of each.

        Gaps list unmatched MUST requirements first, then SHOULD, then NICE.
        """
        matched = sorted(
            (m for m in analysis if m.matched),
            key=lambda m: m.confidence,
            reverse=True,
        )
        strengths = [f"Strong in {m.requirement.description}" for m in matched]

        unmatched = sorted(
            (m for m in analysis if not m.matched),
            key=lambda m: (
                CATEGORY_ORDER[RequirementCategory(m.requirement.category)],
                -m.requirement.weight,
            ),
        )
        gaps = []
        recommendations = []
        for m in unmatched:
            category = RequirementCategory(m.requirement.category)
            description = m.requirement.description
            gaps.append(f"{GAP_PREFIXES[category]}: {description}")
            if m.confidence >= self.keyword_floor:
                recommendations.append(f"Could strengthen {description} skills")
            else:
                recommendations.append(REMEDIATIONS[category].format(description))

        return (
            strengths[:MAX_INSIGHTS],
            gaps[:MAX_INSIGHTS],
            recommendations[:MAX_INSIGHTS],
        )

    # ------------------------------------------------------------------
    # Candidate and requirement texts
    # ------------------------------------------------------------------

    def scoring_texts(self, candidate: Candidate, requirements: Iterable[RequirementItem]) -> List[str]:
        """Every text ``score`` needs a vector for."""
        texts = self.candidate_signals(candidate)
        for requirement in requirements:
            texts.extend(self.requirement_texts(requirement))
        return self._unique(texts)

    def candidate_signals(self, candidate: Candidate) -> List[str]:
        """
        Texts a requirement is compared against: the whole profile, each
        skill and each work experience entry.
        """
        signals = [self.embedding_service.build_candidate_text(candidate)]

        for skill in candidate.skills or []:
            name = (skill.get('name') or '').strip()
            if not name:
                continue
            years = skill.get('years_of_experience')
            signals.append(f"{name} ({years} years)" if years else name)

        signals.extend(experience_line(entry) for entry in candidate.work_experience or [])

        return self._unique(signals)

    @staticmethod
    def requirement_texts(requirement: RequirementItem) -> List[str]:
        texts = [requirement.description] + [
            alt for alt in (requirement.alternatives or []) if isinstance(alt, str)
        ]
        return MatchingEngine._unique(texts)

    @staticmethod
    def candidate_search_text(candidate: Candidate) -> str:
        """Flat text used for keyword matching."""
        parts = []
        if candidate.summary:
            parts.append(candidate.summary)
        parts.append(', '.join(candidate.skill_names))
        parts.extend(
            f"{e.get('job_title', '')} {e.get('description') or ''}"
            for e in candidate.work_experience or []
        )
        parts.extend(
            f"{e.get('degree', '')} {e.get('field_of_study') or ''}"
            for e in candidate.education or []
        )
        return ' '.join(p for p in parts if p)

    @staticmethod
    def find_evidence(candidate: Candidate, requirement: RequirementItem) -> List[str]:
        """Profile entries sharing a keyword with the requirement, at most three."""
        keywords = extract_keywords(requirement.description)
        if not keywords:
            return []
        evidence = []

        for skill in candidate.skills or []:
            name = (skill.get('name') or '').lower()
            if name and any(k in name or name in k for k in keywords):
                evidence.append(
                    f"Skill: {skill.get('name')} ({skill.get('years_of_experience', 0)} years)"
                )

        for entry in candidate.work_experience or []:
            title = (entry.get('job_title') or '').lower()
            description = (entry.get('description') or '').lower()
            if any(k in title or k in description for k in keywords):
                evidence.append(
                    f"Experience: {entry.get('job_title', '')} at {entry.get('company', '')}"
                )

        for entry in candidate.education or []:
            degree = (entry.get('degree') or '').lower()
            field_of_study = (entry.get('field_of_study') or '').lower()
            if any(k in degree or k in field_of_study for k in keywords):
                evidence.append(
                    f"Education: {entry.get('degree', '')} in {entry.get('field_of_study', '')}"
                )

        return evidence[:MAX_EVIDENCE]

    @staticmethod
    def explain_requirement(
        requirement: RequirementItem,
        matched: bool,
        confidence: float,
        evidence: List[str]
    ) -> str:
        percent = _round_score(confidence * 100)
        if matched:
            text = f'Strong match ({percent}% confidence) for "{requirement.description}".'
            if evidence:
                text += f" Evidence: {', '.join(evidence)}."
            return text

        text = f'Partial match ({percent}% confidence) for "{requirement.description}".'
        if evidence:
            return text + f" Some relevant experience found: {', '.join(evidence)}."
        return text + ' No direct evidence found in candidate profile.'

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _embed_unique(self, texts: List[str]) -> Dict[str, List[float]]:
        unique = self._unique(texts)
        results = self.embedding_service.embed_batch(unique)
        return {text: result.vector for text, result in zip(unique, results)}

    @staticmethod
    def _unique(texts: Iterable[str]) -> List[str]:
        seen = set()
        unique = []
        for text in texts:
            if text and text.strip() and text not in seen:
                seen.add(text)
                unique.append(text)
        return unique
