from django.conf import settings
from django.core.management.base import BaseCommand

from core.jobs import ImageCleanupJob
from core.repositories import ScanRepository
from core.storage import ImageStore


class Command(BaseCommand):
    help = "Delete stored scan images older than the retention window."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=settings.IMAGE_RETENTION_DAYS)
        parser.add_argument("--batch-size", type=int, default=100)

    def handle(self, *args, **options):
        job = ImageCleanupJob(
            ScanRepository(),
            ImageStore(),
            retention_days=options["days"],
            batch_size=options["batch_size"],
        )
        result = job.run()
        self.stdout.write(f"{result.deleted} deleted, {result.failed} failed")
