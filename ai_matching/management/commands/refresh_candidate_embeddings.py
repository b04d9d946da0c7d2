"""
Management command to refresh candidate profile embeddings.

Recomputes the embedding of candidates that have none yet (or of every
selected candidate with --force), either inline or through the Celery queue.
"""
from django.core.management.base import BaseCommand, CommandError

from ai_matching.exceptions import MatchingValidationError, UpstreamServiceError
from ai_matching.tasks import update_candidate_embeddings


class Command(BaseCommand):
    help = 'Recompute candidate profile embeddings'

    def add_arguments(self, parser):
        parser.add_argument(
            '--candidate',
            action='append',
            dest='candidate_ids',
            default=[],
            help='Candidate UUID to refresh (repeatable). Defaults to all candidates.',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Recompute embeddings that already exist',
        )
        parser.add_argument(
            '--async',
            action='store_true',
            dest='run_async',
            help='Queue the refresh on the matching queue instead of running it here',
        )

    def handle(self, *args, **options):
        candidate_ids = options['candidate_ids'] or None
        force = options['force']

        if options['run_async']:
            result = update_candidate_embeddings.apply_async(
                kwargs={'candidate_ids': candidate_ids, 'force': force},
                queue='matching',
            )
            self.stdout.write(self.style.SUCCESS(f'Queued embedding refresh: {result.id}'))
            return

        self.stdout.write('Refreshing candidate embeddings...')
        try:
            stats = update_candidate_embeddings(candidate_ids=candidate_ids, force=force)
        except (UpstreamServiceError, MatchingValidationError) as e:
            raise CommandError(f'Embedding refresh failed: {e}')

        self.stdout.write("\n" + "=" * 50)
        self.stdout.write(self.style.SUCCESS("Refresh Summary:"))
        self.stdout.write(f"  Candidates: {stats['total']}")
        self.stdout.write(f"  Updated: {stats['processed']}")
        self.stdout.write(f"  Skipped (no profile text): {stats['skipped']}")
        self.stdout.write(f"  Failed chunks: {len(stats['errors'])}")

        for error in stats['errors'][:10]:
            self.stdout.write(self.style.ERROR(f"  - {error['error']}"))
