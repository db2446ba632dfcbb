from django.core.management.base import BaseCommand, CommandError

from services.expiry import DEFAULT_JOB_NAME, run_expiry_sweep


class Command(BaseCommand):
    help = "Expire bookings whose seat hold lapsed and return their seats to the ride."

    def add_arguments(self, parser):
        parser.add_argument(
            "--job-name",
            default=DEFAULT_JOB_NAME,
            help=f"Name the run is recorded under (default: {DEFAULT_JOB_NAME}).",
        )

    def handle(self, *args, **options):
        try:
            result = run_expiry_sweep(job_name=options["job_name"])
        except Exception as exc:
            raise CommandError(f"Hold expiry sweep failed: {exc}") from exc

        style = self.style.SUCCESS if result.status == "success" else self.style.WARNING
        self.stdout.write(style(result.message))
