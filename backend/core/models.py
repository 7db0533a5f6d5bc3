# backend/core/models.py
import uuid

from django.db import models

from core.exceptions import InvalidStatusTransition
from core.nutrients import Nutrients


class ScanStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


TERMINAL_STATUSES = frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED})

# Every status must appear as a key; terminal ones map to nothing.
ALLOWED_TRANSITIONS = {
    ScanStatus.PENDING: frozenset({ScanStatus.PROCESSING, ScanStatus.COMPLETED, ScanStatus.FAILED}),
    ScanStatus.PROCESSING: frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED}),
    ScanStatus.COMPLETED: frozenset(),
    ScanStatus.FAILED: frozenset(),
}


class ProductSource(models.TextChoices):
    OPENFOODFACTS = "openfoodfacts", "OpenFoodFacts"
    OCR_SCAN = "ocr_scan", "OCR scan"
    MANUAL = "manual", "Manual"


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    barcode = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=500)
    brand = models.CharField(max_length=255, null=True, blank=True)
    image_url = models.URLField(max_length=1000, null=True, blank=True)
    source = models.CharField(max_length=50, choices=ProductSource.choices, default=ProductSource.MANUAL)
    nutrients = models.JSONField(default=dict, blank=True)
    serving_size = models.CharField(max_length=100, null=True, blank=True)
    nutri_score = models.CharField(max_length=1, null=True, blank=True)
    nutri_score_value = models.IntegerField(null=True, blank=True)
    highlights = models.JSONField(null=True, blank=True)
    insights = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "products"

    def __str__(self):
        return f"{self.name} ({self.barcode})"

    def get_nutrients(self) -> Nutrients:
        return Nutrients.from_dict(self.nutrients)

    def set_nutrients(self, nutrients: Nutrients):
        self.nutrients = nutrients.to_dict()


class Scan(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField(null=True, blank=True, db_index=True)
    product = models.ForeignKey(
        Product, null=True, blank=True, on_delete=models.SET_NULL, related_name="scans"
    )
    barcode = models.CharField(max_length=50, null=True, blank=True, db_index=True)
    image_ref = models.CharField(max_length=500, null=True, blank=True)
    image_stored = models.BooleanField(default=False)
    status = models.CharField(
        max_length=20, choices=ScanStatus.choices, default=ScanStatus.PENDING, db_index=True
    )
    ocr_raw = models.TextField(null=True, blank=True)

    # Snapshot of the linked product at completion time; Product stays the
    # source of truth and these are never re-synced.
    nutri_score = models.CharField(max_length=1, null=True, blank=True)
    nutri_score_value = models.IntegerField(null=True, blank=True)
    highlights = models.JSONField(null=True, blank=True)
    insights = models.JSONField(null=True, blank=True)

    processing_time_ms = models.IntegerField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "scans"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Scan {self.id} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_image(self) -> bool:
        return bool(self.image_ref) and self.image_stored

    def transition_to(self, status: str):
        target = ScanStatus(status)
        if target not in ALLOWED_TRANSITIONS[ScanStatus(self.status)]:
            raise InvalidStatusTransition(self.status, target)
        self.status = target
