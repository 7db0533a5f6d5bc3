# backend/core/workers.py
"""
Background OCR processing.

Ingestion offers scan ids to a bounded ScanQueue; a ScanWorkerPool of
threads takes them off one at a time and hands each to ScanProcessor,
which turns a pending scan into a completed (or failed) one.
"""
import logging
import os
import queue
import shutil
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import List, Optional, Tuple

from django.db import close_old_connections, connection
from django.utils import timezone

from core import analysis, parser, scoring
from core.exceptions import NotFound, NutriSnapError
from core.models import Product, ProductSource, Scan, ScanStatus
from core.nutrients import Nutrients

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = "no image to process"


def ocr_barcode(scan_id) -> str:
    return f"ocr-{scan_id}"


class ScanQueue:
    """Fixed-capacity, thread-safe queue of scan ids. Never blocks producers."""

    def __init__(self, maxsize: int):
        self._queue = queue.Queue(maxsize=maxsize)
        self.maxsize = maxsize

    def enqueue(self, scan_id) -> bool:
        try:
            self._queue.put_nowait(str(scan_id))
        except queue.Full:
            # The scan stays pending; nothing requeues it later.
            logger.warning("Scan queue full (capacity %d), dropping scan %s", self.maxsize, scan_id)
            return False
        return True

    def get(self, timeout: float) -> Optional[str]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def task_done(self):
        self._queue.task_done()

    def join(self):
        self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()


class ScanProcessor:
    def __init__(self, scan_repo, product_repo, image_store, recognizer, timeout: float = 120.0):
        self.scan_repo = scan_repo
        self.product_repo = product_repo
        self.image_store = image_store
        self.recognizer = recognizer
        self.timeout = timeout

    # ---- recognition (runs off the worker thread, under the timeout) ----

    def _recognize(self, image_ref: str) -> Tuple[str, Nutrients, Optional[str]]:
        ext = os.path.splitext(image_ref)[1] or ".jpg"
        fd, tmp_path = tempfile.mkstemp(prefix="ocr-", suffix=ext)
        try:
            with os.fdopen(fd, "wb") as out, self.image_store.download(image_ref) as src:
                shutil.copyfileobj(src, out)
            text = self.recognizer.extract(tmp_path)
        finally:
            os.remove(tmp_path)
        nutrients, serving_size = parser.extract(text)
        return text, nutrients, serving_size

    def _recognize_with_timeout(self, image_ref: str):
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ocr")
        try:
            future = executor.submit(self._recognize, image_ref)
            return future.result(timeout=self.timeout)
        finally:
            # a timed out call keeps running in its own thread; we stop waiting
            executor.shutdown(wait=False)

    # ---- state changes ----

    def _elapsed_ms(self, started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _fail(self, scan: Scan, message: str, started: float) -> Scan:
        scan.transition_to(ScanStatus.FAILED)
        scan.error_message = message
        scan.processing_time_ms = self._elapsed_ms(started)
        try:
            self.scan_repo.update(scan)
        except Exception:
            logger.exception("Could not persist failure of scan %s", scan.id)
        logger.warning("Scan %s failed: %s", scan.id, message)
        return scan

    def _discard_product(self, product: Product):
        try:
            self.product_repo.delete(product.id)
        except Exception:
            logger.exception("Could not remove orphaned product %s", product.barcode)

    def _build_product(self, scan: Scan, nutrients: Nutrients, serving_size: Optional[str]) -> Product:
        grade, value = scoring.score(nutrients)
        highlights, insights = analysis.analyze(nutrients)
        product = Product(
            barcode=ocr_barcode(scan.id),
            name="Scanned Product " + timezone.localtime().strftime("%d-%b %H:%M"),
            source=ProductSource.OCR_SCAN,
            serving_size=serving_size or None,
            nutri_score=grade,
            nutri_score_value=value,
            highlights=[h.to_dict() for h in highlights],
            insights=[i.to_dict() for i in insights],
        )
        product.set_nutrients(nutrients)
        return product

    def process(self, scan_id) -> Optional[Scan]:
        """Run one scan to a terminal status. Returns the scan, or None if skipped."""
        started = time.monotonic()
        try:
            scan = self.scan_repo.find_by_id(scan_id)
        except NotFound:
            logger.warning("Scan %s vanished before processing", scan_id)
            return None

        if scan.status != ScanStatus.PENDING:
            logger.info("Scan %s is %s, skipping", scan.id, scan.status)
            return None

        if not scan.has_image:
            return self._fail(scan, NO_IMAGE_MESSAGE, started)

        scan.transition_to(ScanStatus.PROCESSING)
        try:
            self.scan_repo.update(scan)
        except Exception as e:
            logger.exception("Marking scan %s as processing failed", scan.id)
            return self._fail(scan, f"failed to start processing: {e}", started)

        try:
            text, nutrients, serving_size = self._recognize_with_timeout(scan.image_ref)
        except FutureTimeout:
            return self._fail(scan, f"OCR timed out after {self.timeout:g}s", started)
        except (NutriSnapError, OSError) as e:
            return self._fail(scan, f"OCR processing failed: {e}", started)
        except Exception as e:
            logger.exception("Unexpected OCR error on scan %s", scan.id)
            return self._fail(scan, f"OCR processing failed: {e}", started)

        product = None
        try:
            product = self.product_repo.create(self._build_product(scan, nutrients, serving_size))
            scan.product = product
            scan.ocr_raw = text
            scan.nutri_score = product.nutri_score
            scan.nutri_score_value = product.nutri_score_value
            scan.highlights = product.highlights
            scan.insights = product.insights
            scan.error_message = None
            scan.transition_to(ScanStatus.COMPLETED)
            scan.processing_time_ms = self._elapsed_ms(started)
            self.scan_repo.update(scan)
        except Exception as e:
            logger.exception("Persisting results of scan %s failed", scan.id)
            # nothing was stored as completed; roll the in-memory copy back
            scan.status = ScanStatus.PROCESSING
            scan.product = None
            scan.nutri_score = scan.nutri_score_value = None
            scan.highlights = scan.insights = None
            if product is not None:
                self._discard_product(product)
            return self._fail(scan, f"failed to save scan results: {e}", started)

        logger.info("Scan %s completed: grade %s (%s) in %d ms",
                    scan.id, scan.nutri_score, scan.nutri_score_value, scan.processing_time_ms)
        return scan


class ScanWorkerPool:
    def __init__(self, scan_queue: ScanQueue, processor: ScanProcessor, workers: int = 2,
                 poll_interval: float = 0.5):
        self.queue = scan_queue
        self.processor = processor
        self.workers = workers
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self):
        if self.is_running:
            return
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._run, args=(i,), name=f"scan-worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        for t in self._threads:
            t.start()
        logger.info("OCR worker pool: started %d worker(s)", self.workers)

    def stop(self, timeout: Optional[float] = None):
        """Stop taking new scans; in-flight ones are allowed to finish."""
        self._stop.set()
        for t in self._threads:
            t.join(timeout)
        logger.info("OCR worker pool: stopped")

    def _run(self, worker_id: int):
        try:
            while not self._stop.is_set():
                scan_id = self.queue.get(timeout=self.poll_interval)
                if scan_id is None:
                    continue
                try:
                    self.processor.process(scan_id)
                except Exception:
                    logger.exception("OCR worker [%d]: unexpected error on scan %s", worker_id, scan_id)
                finally:
                    self.queue.task_done()
                    close_old_connections()
        finally:
            connection.close()
            logger.debug("OCR worker [%d]: stopping", worker_id)
