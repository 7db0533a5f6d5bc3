# backend/core/repositories.py
"""
Persistence for scans and products.

The pipeline only talks to these two classes, so tests can swap in
in-memory versions with the same method names. Lookups raise the domain
NotFound subclasses instead of Django's DoesNotExist.
"""
from datetime import datetime
from typing import List, Tuple

from django.core.exceptions import ValidationError

from core.exceptions import ProductNotFound, ScanNotFound
from core.models import Product, Scan


class ScanRepository:
    def create(self, scan: Scan) -> Scan:
        scan.save(force_insert=True)
        return scan

    def find_by_id(self, scan_id) -> Scan:
        try:
            return Scan.objects.select_related("product").get(pk=scan_id)
        except (Scan.DoesNotExist, ValidationError, ValueError):
            raise ScanNotFound(scan_id)

    def find_by_user(self, user_id, offset: int, limit: int) -> Tuple[List[Scan], int]:
        qs = Scan.objects.select_related("product").filter(user_id=user_id)
        total = qs.count()
        return list(qs.order_by("-created_at")[offset:offset + limit]), total

    def find_old_with_images(self, older_than: datetime, limit: int) -> List[Scan]:
        qs = Scan.objects.filter(
            created_at__lt=older_than, image_stored=True, image_ref__isnull=False
        )
        return list(qs.order_by("created_at")[:limit])

    def update(self, scan: Scan) -> Scan:
        scan.save()
        return scan

    def delete(self, scan_id):
        deleted, _ = Scan.objects.filter(pk=scan_id).delete()
        if not deleted:
            raise ScanNotFound(scan_id)


class ProductRepository:
    def create(self, product: Product) -> Product:
        product.save(force_insert=True)
        return product

    def find_by_barcode(self, barcode: str) -> Product:
        try:
            return Product.objects.get(barcode=barcode)
        except Product.DoesNotExist:
            raise ProductNotFound(barcode)

    def find_by_id(self, product_id) -> Product:
        try:
            return Product.objects.get(pk=product_id)
        except (Product.DoesNotExist, ValidationError, ValueError):
            raise ProductNotFound(product_id)

    def update(self, product: Product) -> Product:
        product.save()
        return product

    def delete(self, product_id):
        Product.objects.filter(pk=product_id).delete()
