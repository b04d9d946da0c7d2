"""
Django Admin Configuration for AI Matching

This module provides admin interface for match explanations and the
fit-score job history.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import MatchExplanation, MatchingJobRecord


@admin.register(MatchExplanation)
class MatchExplanationAdmin(admin.ModelAdmin):
    """Admin for MatchExplanation model."""
    list_display = [
        'application', 'overall_score', 'must_have_score',
        'should_have_score', 'nice_to_have_score', 'updated_at'
    ]
    search_fields = ['application__candidate__email', 'application__company_job_variant__custom_title']
    raw_id_fields = ['application']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-updated_at']


@admin.register(MatchingJobRecord)
class MatchingJobRecordAdmin(admin.ModelAdmin):
    """Admin for MatchingJobRecord model; failed rows are the dead-letter list."""
    list_display = ['job_name', 'application_id', 'status_badge', 'attempts', 'finished_at']
    list_filter = ['status', 'job_name']
    search_fields = ['task_id', 'application_id', 'error']
    readonly_fields = [
        'task_id', 'job_name', 'application_id', 'payload',
        'status', 'attempts', 'error', 'finished_at'
    ]
    ordering = ['-finished_at']

    def status_badge(self, obj):
        color = 'green' if obj.status == MatchingJobRecord.Status.COMPLETED else 'red'
        return format_html(
            '<span style="color: {};">{}</span>',
            color,
            obj.get_status_display()
        )
    status_badge.short_description = 'Status'

    def has_add_permission(self, request):
        return False
