from django.core.management.base import BaseCommand

from configuration.models import CronRun
from services.settlement import find_unsettled_bookings, settle_unsettled_bookings

JOB_NAME = "bookings:settle-completed"


class Command(BaseCommand):
    help = "Credit driver wallets for completed bookings that were never settled."

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Settle at most this many bookings.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List unsettled bookings without crediting anything.",
        )

    def handle(self, *args, **options):
        if options["dry_run"]:
            booking_ids = list(find_unsettled_bookings().values_list("id", flat=True))
            self.stdout.write(
                self.style.WARNING(
                    f"DRY RUN: {len(booking_ids)} unsettled booking(s): "
                    + ", ".join(str(booking_id) for booking_id in booking_ids)
                )
            )
            return

        result = settle_unsettled_bookings(limit=options["limit"])
        CronRun.record(JOB_NAME, result.status, result.message)

        style = self.style.SUCCESS if result.status == "success" else self.style.ERROR
        self.stdout.write(style(result.message))
