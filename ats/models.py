"""
ATS Models - Records consumed by the matching engine.

This module contains:
- Candidate: candidate profile with parsed skills, experience, education
  and the stored profile embedding
- JobFamily / JobTemplate / CompanyJobVariant: the job hierarchy
- RequirementItem: categorized (MUST / SHOULD / NICE) job requirements
- Application: a candidate applying to a company job variant, carrying the
  computed fit score
"""

import uuid
from typing import List

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from .exceptions import RequirementImmutableError
from .managers import ApplicationManager, CandidateManager


class TimestampedModel(models.Model):
    """Abstract base with a UUID primary key and audit timestamps."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================================
# Candidates
# ============================================================================

class Candidate(TimestampedModel):
    """
    Candidate profile for the ATS.

    Parsed resume data is stored as JSON lists:
    - skills: ``{"name", "years_of_experience", "proficiency", "category"}``
    - work_experience: ``{"job_title", "company", "description",
      "start_date", "end_date", "is_current"}``
    - education: ``{"degree", "field_of_study", "institution"}``

    ``skill_embeddings`` holds the profile vector used for similarity search;
    it is NULL until computed and is refreshed whenever skills, experience
    or summary change.
    """

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=30, blank=True)

    headline = models.CharField(max_length=200, blank=True)
    summary = models.TextField(blank=True)
    total_experience = models.DecimalField(
        max_digits=4,
        decimal_places=1,
        default=0,
        validators=[MinValueValidator(0)]
    )

    skills = models.JSONField(default=list, blank=True)
    work_experience = models.JSONField(default=list, blank=True)
    education = models.JSONField(default=list, blank=True)

    skill_embeddings = models.JSONField(
        null=True,
        blank=True,
        help_text=_('Profile embedding vector')
    )
    embeddings_updated_at = models.DateTimeField(null=True, blank=True)

    objects = CandidateManager()

    class Meta:
        verbose_name = _('Candidate')
        verbose_name_plural = _('Candidates')
        ordering = ['last_name', 'first_name']

    def __str__(self):
        return f"{self.full_name} <{self.email}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def skill_names(self) -> List[str]:
        return [s.get('name', '') for s in self.skills if s.get('name')]

    @property
    def has_embeddings(self) -> bool:
        return bool(self.skill_embeddings)


# ============================================================================
# Job hierarchy
# ============================================================================

class JobFamily(TimestampedModel):
    """Broad group of related roles, e.g. "Software Engineering"."""

    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)

    class Meta:
        verbose_name = _('Job Family')
        verbose_name_plural = _('Job Families')

    def __str__(self):
        return self.name


class JobTemplate(TimestampedModel):
    """Reusable role definition inside a job family."""

    job_family = models.ForeignKey(
        JobFamily,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='templates'
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    class Meta:
        verbose_name = _('Job Template')
        verbose_name_plural = _('Job Templates')

    def __str__(self):
        return self.name


class CompanyJobVariant(TimestampedModel):
    """A company's concrete opening, optionally derived from a template."""

    job_template = models.ForeignKey(
        JobTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='variants'
    )
    custom_title = models.CharField(max_length=200, blank=True)
    custom_description = models.TextField(blank=True)
    company_name = models.CharField(max_length=200, blank=True)
    company_industry = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = _('Company Job Variant')
        verbose_name_plural = _('Company Job Variants')

    def __str__(self):
        return self.title or str(self.id)

    @property
    def title(self) -> str:
        if self.custom_title:
            return self.custom_title
        return self.job_template.name if self.job_template else ''

    @property
    def description(self) -> str:
        if self.custom_description:
            return self.custom_description
        return self.job_template.description if self.job_template else ''


# ============================================================================
# Requirements
# ============================================================================

class RequirementCategory(models.TextChoices):
    """Closed set of requirement categories driving weighted aggregation."""
    MUST = 'must', _('Must Have')
    SHOULD = 'should', _('Should Have')
    NICE = 'nice', _('Nice to Have')


class RequirementType(models.TextChoices):
    SKILL = 'skill', _('Skill')
    EXPERIENCE = 'experience', _('Experience')
    EDUCATION = 'education', _('Education')
    CERTIFICATION = 'certification', _('Certification')
    OTHER = 'other', _('Other')


class RequirementItem(TimestampedModel):
    """
    A single job requirement scoped to exactly one of a job family, a job
    template or a company job variant.

    Once a match explanation snapshot references the requirement
    (``referenced_at`` is set) its content can no longer change, so past
    explanations stay reproducible.
    """

    CONTENT_FIELDS = ('description', 'category', 'type', 'weight', 'alternatives')

    description = models.TextField()
    category = models.CharField(
        max_length=10,
        choices=RequirementCategory.choices,
        default=RequirementCategory.SHOULD
    )
    type = models.CharField(
        max_length=20,
        choices=RequirementType.choices,
        default=RequirementType.SKILL
    )
    weight = models.PositiveSmallIntegerField(
        default=5,
        validators=[MinValueValidator(1), MaxValueValidator(10)]
    )
    alternatives = models.JSONField(default=list, blank=True)

    job_family = models.ForeignKey(
        JobFamily,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='requirements'
    )
    job_template = models.ForeignKey(
        JobTemplate,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='requirements'
    )
    company_job_variant = models.ForeignKey(
        CompanyJobVariant,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='requirements'
    )

    referenced_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_('First time a match explanation snapshot used this requirement')
    )

    class Meta:
        verbose_name = _('Requirement Item')
        verbose_name_plural = _('Requirement Items')
        ordering = ['created_at']
        constraints = [
            models.CheckConstraint(
                name='requirement_item_single_scope',
                condition=(
                    Q(job_family__isnull=False, job_template__isnull=True,
                      company_job_variant__isnull=True)
                    | Q(job_family__isnull=True, job_template__isnull=False,
                        company_job_variant__isnull=True)
                    | Q(job_family__isnull=True, job_template__isnull=True,
                        company_job_variant__isnull=False)
                ),
            ),
            models.CheckConstraint(
                name='requirement_item_weight_range',
                condition=Q(weight__gte=1, weight__lte=10),
            ),
        ]

    def __str__(self):
        return f"[{self.get_category_display()}] {self.description}"

    @property
    def is_referenced(self) -> bool:
        return self.referenced_at is not None

    def clean(self):
        scopes = [self.job_family_id, self.job_template_id, self.company_job_variant_id]
        if sum(1 for scope in scopes if scope is not None) != 1:
            raise ValidationError(
                _('A requirement must belong to exactly one of a job family, '
                  'a job template or a company job variant.')
            )
        if not isinstance(self.alternatives, list):
            raise ValidationError({'alternatives': _('Alternatives must be a list.')})

    def save(self, *args, **kwargs):
        if not self._state.adding:
            self._guard_referenced_content()
        super().save(*args, **kwargs)

    def _guard_referenced_content(self):
        stored = (
            RequirementItem.objects
            .filter(pk=self.pk, referenced_at__isnull=False)
            .values(*self.CONTENT_FIELDS)
            .first()
        )
        if stored is None:
            return
        changed = [
            field for field in self.CONTENT_FIELDS
            if stored[field] != getattr(self, field)
        ]
        if changed:
            raise RequirementImmutableError(self.pk, changed)


# ============================================================================
# Applications
# ============================================================================

class Application(TimestampedModel):
    """
    Job application linking a candidate to a company job variant.

    ``fit_score`` is written by the fit-score job and by manual
    recalculation; it stays NULL until the first computation finishes.
    """

    class ApplicationStatus(models.TextChoices):
        APPLIED = 'applied', _('Applied')
        SCREENING = 'screening', _('Screening')
        SHORTLISTED = 'shortlisted', _('Shortlisted')
        INTERVIEWING = 'interviewing', _('Interviewing')
        OFFER_EXTENDED = 'offer_extended', _('Offer Extended')
        HIRED = 'hired', _('Hired')
        REJECTED = 'rejected', _('Rejected')

    candidate = models.ForeignKey(
        Candidate,
        on_delete=models.CASCADE,
        related_name='applications'
    )
    company_job_variant = models.ForeignKey(
        CompanyJobVariant,
        on_delete=models.CASCADE,
        related_name='applications'
    )
    status = models.CharField(
        max_length=20,
        choices=ApplicationStatus.choices,
        default=ApplicationStatus.APPLIED
    )
    fit_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    applied_at = models.DateTimeField(auto_now_add=True)
    last_updated = models.DateTimeField(auto_now=True)

    objects = ApplicationManager()

    class Meta:
        verbose_name = _('Application')
        verbose_name_plural = _('Applications')
        ordering = ['-applied_at']
        constraints = [
            models.UniqueConstraint(
                fields=['candidate', 'company_job_variant'],
                name='unique_candidate_job_variant_application',
            ),
        ]
        indexes = [
            models.Index(fields=['company_job_variant', 'fit_score'], name='ats_app_variant_fit_idx'),
        ]

    def __str__(self):
        return f"{self.candidate} -> {self.company_job_variant}"
