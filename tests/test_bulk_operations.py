"""Tests for the watermark -> upload -> record pipeline and zip export."""
import io
import zipfile

import pytest
from PIL import Image

from listing_desk.images import PlacementSpec, WatermarkProcessor
from listing_desk.models import PROPERTY_ID
from listing_desk.utils import BatchPolicy, UploadPipeline, export_zip, generate_upload_property_id

from conftest import FakeStorage, FakeStore, make_image_bytes


@pytest.fixture
def specs():
    photo = make_image_bytes()
    return [PlacementSpec(f"photo{i}.jpg", photo) for i in range(1, 4)]


def make_pipeline(store, storage, policy, rollback=False):
    return UploadPipeline(store, storage, WatermarkProcessor(), policy=policy, rollback_on_abort=rollback)


class TestUploadPipeline:
    def test_all_photos_recorded_in_one_row(self, specs):
        store, storage = FakeStore(), FakeStorage()
        result = make_pipeline(store, storage, BatchPolicy.CONTINUE).run(specs, property_id="77", contact_text="Call")
        assert result.successful == 3
        assert len(store.created) == 1
        row = store.created[0]
        assert row[PROPERTY_ID] == 77
        assert row["Photos"] == ", ".join(result.urls)
        assert row["Status"] == "Active"
        assert row["Notes"].startswith("Uploaded ")
        assert result.message == "3 photos uploaded and database updated successfully!"

    def test_abort_stops_batch_and_skips_insert(self, specs):
        store, storage = FakeStore(), FakeStorage(fail_on={2})
        result = make_pipeline(store, storage, BatchPolicy.ABORT).run(specs)
        assert storage.attempts == 2
        assert len(storage.objects) == 1
        assert store.created == []
        assert result.aborted
        assert result.message.startswith("Upload failed after 1 files:")
        assert result.orphaned_paths == list(storage.objects)

    def test_abort_with_rollback_removes_uploaded(self, specs):
        store, storage = FakeStore(), FakeStorage(fail_on={2})
        result = make_pipeline(store, storage, BatchPolicy.ABORT, rollback=True).run(specs)
        assert storage.objects == {}
        assert result.orphaned_paths == []

    def test_continue_records_survivors(self, specs):
        store, storage = FakeStore(), FakeStorage(fail_on={2})
        result = make_pipeline(store, storage, BatchPolicy.CONTINUE).run(specs)
        assert result.successful == 2 and result.failed == 1
        assert result.errors[0]["filename"] == "photo2.jpg"
        assert len(store.created) == 1
        assert store.created[0]["Photos"].count(", ") == 1

    def test_bad_image_counts_as_failure(self, specs):
        specs[0] = PlacementSpec("broken.jpg", b"nope")
        store, storage = FakeStore(), FakeStorage()
        result = make_pipeline(store, storage, BatchPolicy.CONTINUE).run(specs)
        assert result.failed == 1
        assert storage.attempts == 2

    @pytest.mark.parametrize("policy, attempts, created", [
        (BatchPolicy.CONTINUE, 2, 1),
        (BatchPolicy.ABORT, 0, 0),
    ])
    def test_unexpected_error_stays_per_photo(self, specs, policy, attempts, created):
        class BombProcessor(WatermarkProcessor):
            def compose(self, source, logo, options):
                if source == b"bomb":
                    raise Image.DecompressionBombError("Image size exceeds limit")
                return super().compose(source, logo, options)

        specs[0] = PlacementSpec("huge.jpg", b"bomb")
        store, storage = FakeStore(), FakeStorage()
        result = UploadPipeline(store, storage, BombProcessor(), policy=policy).run(specs)
        assert result.failed == 1
        assert result.errors[0]["filename"] == "huge.jpg"
        assert result.errors[0]["error"].startswith("DecompressionBombError")
        assert storage.attempts == attempts
        assert len(store.created) == created

    def test_insert_failure_reported_separately(self, specs):
        store, storage = FakeStore(fail_create="permission denied"), FakeStorage()
        result = make_pipeline(store, storage, BatchPolicy.CONTINUE).run(specs)
        assert result.successful == 3
        assert result.record is None
        assert result.record_error == "permission denied"
        assert len(result.orphaned_paths) == 3
        assert "database update failed" in result.message

    def test_generated_property_id(self, specs):
        store = FakeStore()
        make_pipeline(store, FakeStorage(), BatchPolicy.CONTINUE).run(specs[:1])
        assert isinstance(store.created[0][PROPERTY_ID], int)
        assert store.created[0][PROPERTY_ID] > 1_000_000_000_000

    def test_progress_callback(self, specs):
        calls = []
        make_pipeline(FakeStore(), FakeStorage(), BatchPolicy.CONTINUE).run(
            specs, progress_callback=lambda current, total, status: calls.append((current, total))
        )
        assert calls[0] == (1, 3)
        assert calls[-1] == (3, 3)


class TestBatchPolicy:
    def test_from_config(self):
        assert BatchPolicy.from_config("ABORT") == BatchPolicy.ABORT
        assert BatchPolicy.from_config("whatever") == BatchPolicy.CONTINUE


class TestExportZip:
    def test_names_and_skipped_failures(self):
        items = [
            (b"one", {"filename": "a.jpg"}),
            (None, {"filename": "b.jpg", "error": "bad"}),
            (b"two", {"filename": "a.jpg"}),
        ]
        with zipfile.ZipFile(io.BytesIO(export_zip(items))) as archive:
            assert archive.namelist() == ["watermarked-a.jpg", "watermarked-a-3.jpg"]
            assert archive.read("watermarked-a.jpg") == b"one"


def test_upload_property_id_is_epoch_based():
    first = generate_upload_property_id()
    assert first > 1_000_000_000_000
