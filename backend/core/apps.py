# backend/core/apps.py
import logging
import os
import sys

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


def build_recognizer():
    if settings.OCR_BACKEND == "gemini":
        from core.llm_ocr import GeminiRecognizer
        return GeminiRecognizer()
    from core.ocr import TesseractRecognizer
    return TesseractRecognizer()


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"

    pipeline = None
    comparer = None
    worker_pool = None

    def ready(self):
        from core.openfoodfacts import OpenFoodFactsClient
        from core.pipeline import ScanPipeline
        from core.repositories import ProductRepository, ScanRepository
        from core.services import ProductComparer, ProductService
        from core.storage import ImageStore
        from core.workers import ScanProcessor, ScanQueue, ScanWorkerPool

        scan_repo = ScanRepository()
        product_repo = ProductRepository()
        image_store = ImageStore()
        scan_queue = ScanQueue(settings.SCAN_QUEUE_SIZE)

        self.pipeline = ScanPipeline(
            scan_repo=scan_repo,
            image_store=image_store,
            product_lookup=ProductService(product_repo, OpenFoodFactsClient()),
            scan_queue=scan_queue,
        )
        self.comparer = ProductComparer(product_repo, scan_repo)

        if not settings.SCAN_WORKERS_AUTOSTART or self._is_management_command():
            return

        processor = ScanProcessor(
            scan_repo=scan_repo,
            product_repo=product_repo,
            image_store=image_store,
            recognizer=build_recognizer(),
            timeout=settings.SCAN_PROCESSING_TIMEOUT,
        )
        self.worker_pool = ScanWorkerPool(scan_queue, processor, workers=settings.SCAN_WORKERS)
        self.worker_pool.start()

    @staticmethod
    def _is_management_command() -> bool:
        # runserver's autoreloader imports the project twice; only the child serves
        argv = sys.argv[1:2]
        if argv == ["runserver"]:
            return os.environ.get("RUN_MAIN") != "true"
        return bool(argv) and argv[0] in {"migrate", "makemigrations", "test", "shell", "cleanup_scan_images"}
