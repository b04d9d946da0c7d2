from django.apps import AppConfig


class AtsConfig(AppConfig):
    """Candidates, job hierarchy, requirements and applications."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'ats'
    verbose_name = 'Applicant Tracking'

    def ready(self):
        # Fit-score job is queued when an application is created
        import ats.signals  # noqa
