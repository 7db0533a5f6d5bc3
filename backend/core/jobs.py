# backend/core/jobs.py
import logging
from dataclasses import dataclass
from datetime import timedelta

from django.utils import timezone

from core.exceptions import StorageError

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    deleted: int = 0
    failed: int = 0


class ImageCleanupJob:
    """Removes stored scan images past the retention window; the scans stay."""

    def __init__(self, scan_repo, image_store, retention_days: int = 30, batch_size: int = 100):
        self.scan_repo = scan_repo
        self.image_store = image_store
        self.retention_days = retention_days
        self.batch_size = batch_size

    def run(self) -> CleanupResult:
        cutoff = timezone.now() - timedelta(days=self.retention_days)
        logger.info("Running cleanup for images older than %s", cutoff.date())

        result = CleanupResult()
        scans = self.scan_repo.find_old_with_images(cutoff, self.batch_size)
        if not scans:
            logger.info("No old images to clean up")
            return result

        for scan in scans:
            if not scan.has_image:
                continue
            try:
                self.image_store.delete(scan.image_ref)
            except StorageError as e:
                logger.warning("Failed to delete image %s: %s", scan.image_ref, e)
                result.failed += 1
                continue

            scan.image_ref = None
            scan.image_stored = False
            self.scan_repo.update(scan)
            result.deleted += 1

        logger.info("Cleanup completed: %d deleted, %d failed", result.deleted, result.failed)
        return result
