"""
Management command to re-score the applications of a job variant.

Queues one fit-score job per application, spread over a short random delay.
"""
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from ats.models import CompanyJobVariant
from ats.services import ApplicationService


class Command(BaseCommand):
    help = 'Queue fit-score recalculation for the applications of a job variant'

    def add_arguments(self, parser):
        parser.add_argument(
            'job_variant_id',
            type=str,
            help='Company job variant UUID',
        )
        parser.add_argument(
            '--candidate',
            action='append',
            dest='candidate_ids',
            default=[],
            help='Only re-score this candidate (repeatable)',
        )

    def handle(self, *args, **options):
        job_variant_id = options['job_variant_id']

        try:
            exists = CompanyJobVariant.objects.filter(pk=job_variant_id).exists()
        except ValidationError:
            raise CommandError(f"Invalid job variant id: {job_variant_id}")
        if not exists:
            raise CommandError(f"Job variant not found: {job_variant_id}")

        queued = ApplicationService().batch_calculate_fit_scores(
            job_variant_id,
            options['candidate_ids'] or None,
        )
        self.stdout.write(self.style.SUCCESS(f'Queued {queued} fit score job(s)'))
