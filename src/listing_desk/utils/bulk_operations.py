"""
Bulk Operations for listing photos
Watermarks a batch of photos, uploads them to the photos bucket, and records
one listing row pointing at all of them. Also packages watermarked batches
as a zip download.
"""
import io
import logging
import random
import time
import zipfile
from datetime import date
from enum import Enum
from typing import List, Dict, Any, Optional, Callable, Tuple
from dataclasses import dataclass, field

from ..api.client import ListingStoreClient, PhotoStorageClient, ListingStoreError
from ..api.config import Config
from ..images.processor import WatermarkProcessor, PlacementSpec, ImageLoadError, ImageSource
from ..models.listing import PROPERTY_ID, ListingStatus


LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class BatchPolicy(Enum):
    """What to do with the rest of a batch after one item fails"""
    CONTINUE = "continue"
    ABORT = "abort"

    @classmethod
    def from_config(cls, value: str = None) -> 'BatchPolicy':
        try:
            return cls((value or Config.BATCH_POLICY or 'continue').lower())
        except ValueError:
            LOGGER.warning("Unknown batch policy %r, using 'continue'", value)
            return cls.CONTINUE


@dataclass
class UploadResult:
    """Result of an upload batch"""
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    aborted: bool = False
    record: Optional[Dict[str, Any]] = None
    record_error: Optional[str] = None
    removed: List[str] = field(default_factory=list)

    def add_success(self, filename: str, path: str, url: str, metadata: dict = None):
        """Add a successful upload"""
        self.successful += 1
        self.results.append({
            'filename': filename,
            'path': path,
            'url': url,
            'status': 'success',
            'metadata': metadata or {}
        })

    def add_failure(self, filename: str, error: str):
        """Add a failed upload"""
        self.failed += 1
        self.errors.append({
            'filename': filename,
            'error': error,
            'status': 'failed'
        })

    @property
    def urls(self) -> List[str]:
        return [item['url'] for item in self.results]

    @property
    def uploaded_paths(self) -> List[str]:
        return [item['path'] for item in self.results]

    @property
    def orphaned_paths(self) -> List[str]:
        """Objects left in storage with no listing row pointing at them"""
        if self.record is not None:
            return []
        return [path for path in self.uploaded_paths if path not in self.removed]

    @property
    def message(self) -> str:
        """One-line outcome, suitable for an alert"""
        if self.aborted:
            error = self.errors[-1]['error'] if self.errors else 'unknown error'
            return f"Upload failed after {self.successful} files: {error}"
        if self.record_error:
            return f"Photos uploaded successfully but database update failed: {self.record_error}"
        if self.record is not None and self.failed:
            return f"{self.successful} photos uploaded and database updated; {self.failed} failed"
        if self.record is not None:
            return f"{self.successful} photos uploaded and database updated successfully!"
        return "No photos were uploaded"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'aborted': self.aborted,
            'message': self.message,
            'urls': self.urls,
            'record': self.record,
            'record_error': self.record_error,
            'orphaned': self.orphaned_paths,
            'results': self.results,
            'errors': self.errors
        }

    def __str__(self):
        return f"UploadResult(total={self.total}, successful={self.successful}, failed={self.failed})"


def generate_upload_property_id() -> int:
    """Property ID for an upload batch with none supplied: epoch ms + random(0..999)"""
    return int(time.time() * 1000) + random.randint(0, 999)


class UploadPipeline:
    """
    Watermark -> upload -> public URL for each photo, then one listing insert

    Photos are processed strictly one after another. Each photo's outcome is
    recorded on its own; the batch policy decides whether a failure stops the
    remaining photos. An aborted batch inserts no row.
    """

    def __init__(
        self,
        store: ListingStoreClient,
        storage: PhotoStorageClient,
        processor: WatermarkProcessor = None,
        policy: BatchPolicy = None,
        rollback_on_abort: bool = None
    ):
        """
        Initialize the pipeline

        Args:
            store: Listings table client
            storage: Photos bucket client
            processor: Watermark processor (creates new one if not provided)
            policy: Failure policy (uses config if not provided)
            rollback_on_abort: Remove already uploaded photos when a batch aborts
        """
        self.store = store
        self.storage = storage
        self.processor = processor or WatermarkProcessor()
        self.policy = policy or BatchPolicy.from_config()
        self.rollback_on_abort = Config.ROLLBACK_ON_ABORT if rollback_on_abort is None else rollback_on_abort

    def run(
        self,
        specs: List[PlacementSpec],
        property_id: Any = None,
        contact_text: str = '',
        logo_source: Optional[ImageSource] = None,
        progress_callback: ProgressCallback = None
    ) -> UploadResult:
        """
        Process a batch of photos

        Args:
            specs: One placement spec per photo
            property_id: Property ID for the new row (generated if not provided)
            contact_text: Text drawn under the logo
            logo_source: Logo image
            progress_callback: Optional callback(current, total, status)

        Returns:
            UploadResult with per-photo outcomes and the inserted row
        """
        result = UploadResult(total=len(specs))
        logo = self.processor.load_logo(logo_source)

        for i, spec in enumerate(specs):
            if progress_callback:
                progress_callback(i + 1, result.total, f"Processing {i + 1}/{result.total}...")
            try:
                encoded, metadata = self.processor.compose(spec.data, logo, spec.options(contact_text))
                path = self.storage.make_object_key()
                self.storage.upload(path, encoded, content_type='image/jpeg')
                url = self.storage.get_public_url(path)
                result.add_success(spec.filename, path, url, metadata)
            except (ListingStoreError, ImageLoadError, ValueError) as e:
                error = e.message if isinstance(e, ListingStoreError) else str(e)
                LOGGER.warning("[Upload] %s failed: %s", spec.filename, error)
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                LOGGER.exception("[Upload] %s failed unexpectedly", spec.filename)
            else:
                continue

            result.add_failure(spec.filename, error)
            if self.policy == BatchPolicy.ABORT:
                result.aborted = True
                break

        if result.aborted:
            LOGGER.error("[Upload] batch aborted after %d of %d files", result.successful, result.total)
            if self.rollback_on_abort and result.uploaded_paths:
                self._rollback(result)
        elif result.urls:
            self._record(result, property_id)

        if progress_callback:
            progress_callback(result.total, result.total, "Complete")
        return result

    def _record(self, result: UploadResult, property_id: Any):
        """Insert the single listing row for the batch"""
        if property_id in (None, ''):
            property_id = generate_upload_property_id()
        else:
            try:
                property_id = int(property_id)
            except (TypeError, ValueError):
                pass
        record = {
            PROPERTY_ID: property_id,
            'Photos': ', '.join(result.urls),
            'Status': ListingStatus.ACTIVE.value,
            'Notes': f"Uploaded {date.today().isoformat()}"
        }
        try:
            result.record = self.store.create(record)
            LOGGER.info("[Upload] recorded %d photos under %s=%s",
                        len(result.urls), PROPERTY_ID, record[PROPERTY_ID])
        except ListingStoreError as e:
            LOGGER.error("[Upload] photos uploaded but insert failed: %s", e.message)
            result.record_error = e.message

    def _rollback(self, result: UploadResult):
        try:
            self.storage.remove(result.uploaded_paths)
            result.removed = list(result.uploaded_paths)
        except ListingStoreError as e:
            LOGGER.error("[Upload] could not remove orphaned photos: %s", e.message)


def export_zip(items: List[Tuple[Optional[bytes], dict]]) -> bytes:
    """
    Package watermarked photos into a zip archive

    Args:
        items: (bytes, metadata) pairs from WatermarkProcessor.process_batch;
               failed items are skipped

    Returns:
        Zip file bytes with one `watermarked-<filename>` entry per photo
    """
    buffer = io.BytesIO()
    used = set()
    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
        for index, (encoded, metadata) in enumerate(items):
            if encoded is None:
                continue
            name = f"watermarked-{metadata.get('filename') or f'image-{index + 1}.jpg'}"
            if name in used:
                stem, dot, ext = name.rpartition('.')
                name = f"{stem}-{index + 1}.{ext}" if dot else f"{name}-{index + 1}"
            used.add(name)
            archive.writestr(name, encoded)
    return buffer.getvalue()
