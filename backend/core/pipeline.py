# backend/core/pipeline.py
"""
Scan ingestion and read access.

create_scan decides, before anything is persisted, whether a scan can be
completed right away from its barcode (fast path) or has to wait for OCR.
Only pending scans with a stored image are offered to the worker queue.
"""
from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import IO, List, Optional

from core.exceptions import (
    InvalidInput,
    LookupFailed,
    NotFound,
    PermissionDenied,
    StorageError,
)
from core.models import Scan, ScanStatus
from core.storage import object_name_for

logger = logging.getLogger(__name__)

MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")


@dataclass
class ScanUploadAck:
    id: str
    status: str
    image_url: Optional[str]
    created_at: datetime
    message: str = "Scan created successfully"


@dataclass
class ScanPage:
    scans: List[Scan]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def parse_user_id(user_id) -> Optional[uuid.UUID]:
    if user_id in (None, ""):
        return None
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        raise InvalidInput(f"invalid user ID: {user_id}")


class ScanPipeline:
    def __init__(self, scan_repo, image_store, product_lookup, scan_queue):
        self.scan_repo = scan_repo
        self.image_store = image_store
        self.product_lookup = product_lookup
        self.scan_queue = scan_queue

    # ---- ingestion ----

    def _validate_upload(self, file, size, content_type, store_image, barcode):
        if file is None:
            if not barcode:
                raise InvalidInput("an image or a barcode is required")
            if store_image:
                raise InvalidInput("store_image requires an image")
            return
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise InvalidInput(f"unsupported image type: {content_type}")
        if size is not None and size > MAX_IMAGE_SIZE:
            raise InvalidInput(f"image too large: {size} bytes (max {MAX_IMAGE_SIZE})")

    def _try_fast_path(self, scan: Scan, barcode: str) -> bool:
        try:
            product = self.product_lookup.get_by_barcode(barcode)
        except NotFound:
            logger.info("Barcode %s not found, falling back to OCR", barcode)
            return False
        except LookupFailed as e:
            logger.warning("Barcode lookup for %s failed, falling back to OCR: %s", barcode, e)
            return False
        scan.product = product
        scan.transition_to(ScanStatus.COMPLETED)
        return True

    def create_scan(self, user_id, file: Optional[IO[bytes]], filename: str = "",
                    size: Optional[int] = None, content_type: Optional[str] = None,
                    store_image: bool = False, barcode: Optional[str] = None) -> ScanUploadAck:
        uid = parse_user_id(user_id)
        barcode = (barcode or "").strip() or None
        self._validate_upload(file, size, content_type, store_image, barcode)

        scan = Scan(user_id=uid, barcode=barcode, status=ScanStatus.PENDING, image_stored=False)

        if store_image and file is not None:
            scan.image_ref = self.image_store.upload(
                object_name_for(uid, filename), file, size, content_type
            )
            scan.image_stored = True

        if barcode:
            self._try_fast_path(scan, barcode)

        try:
            self.scan_repo.create(scan)
        except Exception:
            if scan.image_ref:
                self._delete_image_quietly(scan.image_ref)
            raise

        if scan.status == ScanStatus.PENDING and scan.has_image:
            self.enqueue_scan(scan.id)

        return ScanUploadAck(
            id=str(scan.id),
            status=scan.status,
            image_url=self.image_url_for(scan),
            created_at=scan.created_at,
        )

    def enqueue_scan(self, scan_id) -> bool:
        return self.scan_queue.enqueue(scan_id)

    # ---- reads ----

    def image_url_for(self, scan: Scan) -> Optional[str]:
        if not scan.has_image:
            return None
        try:
            return self.image_store.url(scan.image_ref)
        except StorageError as e:
            logger.warning("No URL for image of scan %s: %s", scan.id, e)
            return None

    def get_scan(self, scan_id) -> Scan:
        return self.scan_repo.find_by_id(scan_id)

    def get_user_scans(self, user_id, page: int = 1, limit: int = 10) -> ScanPage:
        uid = parse_user_id(user_id)
        if uid is None:
            raise InvalidInput("user ID is required")
        if page < 1 or limit < 1:
            raise InvalidInput("page and limit must be positive")
        scans, total = self.scan_repo.find_by_user(uid, (page - 1) * limit, limit)
        return ScanPage(scans=scans, total=total, page=page, limit=limit)

    def get_scan_image_url(self, scan_id) -> str:
        scan = self.scan_repo.find_by_id(scan_id)
        if not scan.has_image:
            raise NotFound("no image stored for this scan")
        return self.image_store.url(scan.image_ref)

    def delete_scan(self, scan_id, user_id):
        scan = self.scan_repo.find_by_id(scan_id)
        uid = parse_user_id(user_id)
        if scan.user_id is not None and scan.user_id != uid:
            raise PermissionDenied("scan does not belong to user")
        if scan.has_image:
            self._delete_image_quietly(scan.image_ref)
        self.scan_repo.delete(scan.id)

    def _delete_image_quietly(self, ref: str):
        try:
            self.image_store.delete(ref)
        except StorageError as e:
            logger.warning("Failed to delete image %s from storage: %s", ref, e)
