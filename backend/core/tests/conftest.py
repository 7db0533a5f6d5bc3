import io
import threading

import pytest
from django.db import IntegrityError
from django.utils import timezone

from core.exceptions import ProductNotFound, RecognitionError, ScanNotFound, StorageError
from core.models import Product, ProductSource
from core.nutrients import Nutrients
from core.pipeline import ScanPipeline
from core.workers import ScanProcessor, ScanQueue

LABEL_TEXT = """NUTRITION FACTS
Serving size 30 g
Energy 120 kcal
Total Fat 4,5g
Saturated Fat 1g
Carbohydrate 18g
Sugars 9g
Dietary Fiber 2g
Protein 3g
Sodium 150mg
"""


class InMemoryScanRepository:
    def __init__(self):
        self.rows = {}
        self.lock = threading.Lock()
        self.history = []  # (scan id, status) on every write
        self.fail_updates_with_status = None

    def create(self, scan):
        scan.created_at = scan.created_at or timezone.now()
        with self.lock:
            self.rows[str(scan.id)] = scan
            self.history.append((str(scan.id), scan.status))
        return scan

    def find_by_id(self, scan_id):
        try:
            return self.rows[str(scan_id)]
        except KeyError:
            raise ScanNotFound(scan_id)

    def find_by_user(self, user_id, offset, limit):
        mine = [s for s in self.rows.values() if s.user_id == user_id]
        mine.sort(key=lambda s: s.created_at, reverse=True)
        return mine[offset:offset + limit], len(mine)

    def find_old_with_images(self, older_than, limit):
        old = [s for s in self.rows.values()
               if s.created_at < older_than and s.image_stored and s.image_ref]
        return old[:limit]

    def update(self, scan):
        if self.fail_updates_with_status and scan.status == self.fail_updates_with_status:
            raise RuntimeError("database is locked")
        with self.lock:
            self.rows[str(scan.id)] = scan
            self.history.append((str(scan.id), scan.status))
        return scan

    def delete(self, scan_id):
        if self.rows.pop(str(scan_id), None) is None:
            raise ScanNotFound(scan_id)

    def statuses(self, scan_id):
        return [s for i, s in self.history if i == str(scan_id)]


class InMemoryProductRepository:
    def __init__(self):
        self.rows = {}
        self.fail_creates = False

    def create(self, product):
        if self.fail_creates:
            raise RuntimeError("insert failed")
        if product.barcode in self.rows:
            raise IntegrityError("duplicate barcode")
        self.rows[product.barcode] = product
        return product

    def find_by_barcode(self, barcode):
        try:
            return self.rows[barcode]
        except KeyError:
            raise ProductNotFound(barcode)

    def find_by_id(self, product_id):
        for p in self.rows.values():
            if str(p.id) == str(product_id):
                return p
        raise ProductNotFound(product_id)

    def update(self, product):
        self.rows[product.barcode] = product
        return product

    def delete(self, product_id):
        for barcode, p in list(self.rows.items()):
            if str(p.id) == str(product_id):
                del self.rows[barcode]


class FakeImageStore:
    def __init__(self):
        self.blobs = {}
        self.deleted = []

    def upload(self, name, fileobj, size=None, content_type=None):
        self.blobs[name] = fileobj.read()
        return name

    def download(self, ref):
        if ref not in self.blobs:
            raise StorageError(f"image not found in storage: {ref}")
        return io.BytesIO(self.blobs[ref])

    def delete(self, ref):
        self.deleted.append(ref)
        self.blobs.pop(ref, None)

    def url(self, ref):
        return f"/media/{ref}"


class FakeRecognizer:
    def __init__(self, text=LABEL_TEXT, error=None, delay=None):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls = []

    def extract(self, image_path):
        self.calls.append(image_path)
        if self.delay:
            self.delay.wait(5)
        if self.error:
            raise RecognitionError(self.error)
        return self.text


class FakeProductLookup:
    """Known barcodes resolve to an external product; anything else misses."""

    def __init__(self, known=None, error=None):
        self.known = known or {}
        self.error = error
        self.calls = []

    def get_by_barcode(self, barcode):
        self.calls.append(barcode)
        if self.error:
            raise self.error
        if barcode not in self.known:
            raise ProductNotFound(barcode)
        return self.known[barcode]


def make_product(barcode="8991002101234", **kwargs):
    product = Product(
        barcode=barcode,
        name=kwargs.pop("name", "Teh Botol"),
        source=kwargs.pop("source", ProductSource.OPENFOODFACTS),
        **kwargs,
    )
    product.set_nutrients(Nutrients(sugar_g=6.0, energy_kcal=45.0))
    return product


@pytest.fixture
def scan_repo():
    return InMemoryScanRepository()


@pytest.fixture
def product_repo():
    return InMemoryProductRepository()


@pytest.fixture
def image_store():
    return FakeImageStore()


@pytest.fixture
def known_product():
    return make_product()


@pytest.fixture
def lookup(known_product):
    return FakeProductLookup({known_product.barcode: known_product})


@pytest.fixture
def scan_queue():
    return ScanQueue(maxsize=10)


@pytest.fixture
def pipeline(scan_repo, image_store, lookup, scan_queue):
    return ScanPipeline(scan_repo, image_store, lookup, scan_queue)


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def processor(scan_repo, product_repo, image_store, recognizer):
    return ScanProcessor(scan_repo, product_repo, image_store, recognizer, timeout=5)


@pytest.fixture
def jpeg():
    return io.BytesIO(b"\xff\xd8\xff\xe0fake-jpeg-bytes")
