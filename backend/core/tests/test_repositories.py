import uuid
from datetime import timedelta

import pytest
from django.db import IntegrityError
from django.utils import timezone

from core.exceptions import ProductNotFound, ScanNotFound
from core.models import Scan, ScanStatus
from core.repositories import ProductRepository, ScanRepository

from .conftest import make_product

pytestmark = pytest.mark.django_db


def test_scan_create_and_find():
    repo = ScanRepository()
    scan = repo.create(Scan(user_id=uuid.uuid4(), status=ScanStatus.PENDING))
    found = repo.find_by_id(str(scan.id))
    assert found.id == scan.id
    assert found.created_at is not None


@pytest.mark.parametrize("bad_id", [uuid.uuid4(), "not-a-uuid"])
def test_missing_scan_raises_domain_error(bad_id):
    with pytest.raises(ScanNotFound):
        ScanRepository().find_by_id(bad_id)


def test_find_by_user_pages_newest_first():
    repo = ScanRepository()
    owner = uuid.uuid4()
    ids = [repo.create(Scan(user_id=owner)).id for _ in range(3)]
    now = timezone.now()
    for age, scan_id in enumerate(reversed(ids)):
        Scan.objects.filter(pk=scan_id).update(created_at=now - timedelta(minutes=age))
    repo.create(Scan(user_id=uuid.uuid4()))

    scans, total = repo.find_by_user(owner, offset=0, limit=2)
    assert total == 3
    assert [s.id for s in scans] == ids[::-1][:2]


def test_find_old_with_images_filters_on_age_and_flag():
    repo = ScanRepository()
    old = repo.create(Scan(image_ref="scans/old.jpg", image_stored=True))
    repo.create(Scan(image_ref="scans/new.jpg", image_stored=True))
    unstored = repo.create(Scan(image_ref=None, image_stored=False))
    long_ago = timezone.now() - timedelta(days=40)
    Scan.objects.filter(pk__in=[old.pk, unstored.pk]).update(created_at=long_ago)

    found = repo.find_old_with_images(timezone.now() - timedelta(days=30), limit=10)
    assert [s.id for s in found] == [old.id]


def test_delete_missing_scan_raises():
    repo = ScanRepository()
    scan = repo.create(Scan())
    repo.delete(scan.id)
    with pytest.raises(ScanNotFound):
        repo.delete(scan.id)


def test_update_persists_snapshot_and_product_link():
    products = ProductRepository()
    product = products.create(make_product())
    repo = ScanRepository()
    scan = repo.create(Scan())
    scan.product = product
    scan.highlights = [{"nutrient": "Sugar", "level": "low"}]
    scan.transition_to(ScanStatus.COMPLETED)
    repo.update(scan)

    reloaded = repo.find_by_id(scan.id)
    assert reloaded.status == ScanStatus.COMPLETED
    assert reloaded.product.barcode == product.barcode
    assert reloaded.highlights == [{"nutrient": "Sugar", "level": "low"}]


def test_product_barcode_is_unique():
    repo = ProductRepository()
    repo.create(make_product("555"))
    assert repo.find_by_barcode("555").name == "Teh Botol"
    with pytest.raises(IntegrityError):
        repo.create(make_product("555"))


def test_missing_product_raises_domain_error():
    with pytest.raises(ProductNotFound):
        ProductRepository().find_by_barcode("nope")
    with pytest.raises(ProductNotFound):
        ProductRepository().find_by_id("nope")


def test_product_delete_is_idempotent():
    repo = ProductRepository()
    product = repo.create(make_product("666"))
    repo.delete(product.id)
    repo.delete(product.id)
    with pytest.raises(ProductNotFound):
        repo.find_by_barcode("666")
