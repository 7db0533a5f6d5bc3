import uuid
from datetime import timedelta

from django.core.management import call_command
from django.utils import timezone

from core.exceptions import StorageError
from core.jobs import ImageCleanupJob
from core.models import Scan, ScanStatus


def stored_scan(scan_repo, image_store, days_old):
    ref = f"scans/{uuid.uuid4()}.jpg"
    image_store.blobs[ref] = b"img"
    scan = Scan(image_ref=ref, image_stored=True, status=ScanStatus.COMPLETED,
                created_at=timezone.now() - timedelta(days=days_old))
    return scan_repo.create(scan)


def test_old_images_are_removed_scans_kept(scan_repo, image_store):
    old = stored_scan(scan_repo, image_store, 45)
    old_ref = old.image_ref
    recent = stored_scan(scan_repo, image_store, 2)

    result = ImageCleanupJob(scan_repo, image_store, retention_days=30).run()

    assert (result.deleted, result.failed) == (1, 0)
    assert image_store.deleted == [old_ref]
    kept = scan_repo.find_by_id(old.id)
    assert kept.image_ref is None
    assert not kept.image_stored
    assert kept.status == ScanStatus.COMPLETED
    assert scan_repo.find_by_id(recent.id).has_image


def test_batch_size_limits_one_run(scan_repo, image_store):
    for _ in range(3):
        stored_scan(scan_repo, image_store, 60)
    result = ImageCleanupJob(scan_repo, image_store, batch_size=2).run()
    assert result.deleted == 2


def test_storage_failure_is_counted_and_scan_untouched(scan_repo, image_store):
    scan = stored_scan(scan_repo, image_store, 90)

    def broken_delete(ref):
        raise StorageError("bucket unavailable")
    image_store.delete = broken_delete

    result = ImageCleanupJob(scan_repo, image_store).run()
    assert (result.deleted, result.failed) == (0, 1)
    assert scan_repo.find_by_id(scan.id).has_image


def test_nothing_to_do(scan_repo, image_store):
    result = ImageCleanupJob(scan_repo, image_store).run()
    assert (result.deleted, result.failed) == (0, 0)


def test_management_command(monkeypatch, scan_repo, image_store, capsys):
    stored_scan(scan_repo, image_store, 10)
    monkeypatch.setattr("core.management.commands.cleanup_scan_images.ScanRepository", lambda: scan_repo)
    monkeypatch.setattr("core.management.commands.cleanup_scan_images.ImageStore", lambda: image_store)

    call_command("cleanup_scan_images", days=7)

    assert "1 deleted, 0 failed" in capsys.readouterr().out
