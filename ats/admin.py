"""
ATS Admin - Admin configuration for the records used by matching.
"""

from django.contrib import admin

from .models import (
    Application, Candidate, CompanyJobVariant,
    JobFamily, JobTemplate, RequirementItem
)


class RequirementItemInline(admin.TabularInline):
    model = RequirementItem
    extra = 0
    fields = ['description', 'category', 'type', 'weight', 'alternatives', 'referenced_at']
    readonly_fields = ['referenced_at']


@admin.register(Candidate)
class CandidateAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'email', 'total_experience', 'has_embeddings', 'embeddings_updated_at']
    search_fields = ['first_name', 'last_name', 'email', 'headline']
    readonly_fields = ['id', 'skill_embeddings', 'embeddings_updated_at', 'created_at', 'updated_at']

    def has_embeddings(self, obj):
        return obj.has_embeddings
    has_embeddings.boolean = True
    has_embeddings.short_description = 'Embedding'


@admin.register(JobFamily)
class JobFamilyAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']
    inlines = [RequirementItemInline]


@admin.register(JobTemplate)
class JobTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'job_family', 'created_at']
    list_filter = ['job_family']
    search_fields = ['name']
    inlines = [RequirementItemInline]


@admin.register(CompanyJobVariant)
class CompanyJobVariantAdmin(admin.ModelAdmin):
    list_display = ['title', 'company_name', 'job_template', 'is_active', 'created_at']
    list_filter = ['is_active', 'company_industry']
    search_fields = ['custom_title', 'company_name']
    inlines = [RequirementItemInline]


@admin.register(RequirementItem)
class RequirementItemAdmin(admin.ModelAdmin):
    list_display = ['description', 'category', 'type', 'weight', 'referenced_at']
    list_filter = ['category', 'type']
    search_fields = ['description']
    readonly_fields = ['referenced_at', 'created_at', 'updated_at']


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ['candidate', 'company_job_variant', 'status', 'fit_score', 'applied_at']
    list_filter = ['status']
    search_fields = ['candidate__email', 'candidate__last_name', 'company_job_variant__custom_title']
    raw_id_fields = ['candidate', 'company_job_variant']
    readonly_fields = ['fit_score', 'applied_at', 'last_updated']
