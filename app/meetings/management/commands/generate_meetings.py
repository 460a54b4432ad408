import datetime
import logging

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from meetings.models import MeetingSeries
from meetings.recurrence import InvalidSeriesError
from meetings.services import generate_meetings

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Materialise upcoming meetings for every meeting series"

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=settings.MEETING_GENERATION_DAYS,
            help="Number of days ahead to generate, starting today (default: %(default)s)",
        )
        parser.add_argument(
            '--series',
            type=int,
            nargs='+',
            metavar='ID',
            help="Only generate for these series ids",
        )

    def handle(self, *args, **options):
        if options['days'] < 0:
            raise CommandError("--days must not be negative")

        window_start = timezone.localdate()
        window_end = window_start + datetime.timedelta(days=options['days'])

        series_list = MeetingSeries.objects.order_by('pk')
        if options['series']:
            series_list = series_list.filter(pk__in=options['series'])
            missing = set(options['series']) - set(series_list.values_list('pk', flat=True))
            if missing:
                raise CommandError(f"Unknown series: {', '.join(map(str, sorted(missing)))}")

        total = 0
        skipped = 0
        for series in series_list:
            try:
                created = generate_meetings(series, window_start, window_end)
            except InvalidSeriesError as exc:
                skipped += 1
                logger.warning("Skipping series %s (%s): %s", series.pk, series.name, "; ".join(exc.messages))
                self.stderr.write(f"Skipped '{series.name}': {' '.join(exc.messages)}")
                continue
            total += len(created)
            if created:
                self.stdout.write(f"{series.name}: {len(created)} new meetings")

        summary = f"Generated {total} meetings between {window_start:%Y-%m-%d} and {window_end:%Y-%m-%d}"
        if skipped:
            self.stdout.write(self.style.WARNING(f"{summary}; skipped {skipped} invalid series."))
        else:
            self.stdout.write(self.style.SUCCESS(f"{summary}."))
