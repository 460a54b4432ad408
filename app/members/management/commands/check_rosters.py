from django.core.management.base import BaseCommand

from members.services import repair_rosters, roster_inconsistencies


class Command(BaseCommand):
    help = "Report (and optionally repair) GDI and ministry-area rosters that disagree with member assignments"

    def add_arguments(self, parser):
        parser.add_argument(
            '--repair',
            action='store_true',
            help="Rewrite rosters to match the members' own GDI and area assignments",
        )

    def handle(self, *args, **options):
        mismatches = repair_rosters() if options['repair'] else roster_inconsistencies()
        for mismatch in mismatches:
            self.stdout.write(f"{mismatch.kind}: member {mismatch.member_id}, group {mismatch.group_id}")

        if not mismatches:
            self.stdout.write(self.style.SUCCESS("Rosters are consistent."))
        elif options['repair']:
            self.stdout.write(self.style.SUCCESS(f"Repaired {len(mismatches)} mismatches."))
        else:
            self.stdout.write(self.style.WARNING(f"Found {len(mismatches)} mismatches; run with --repair to fix."))
