"""
Listing Desk - listings table dashboard and photo watermarking
"""
from .api import ListingStoreClient, PhotoStorageClient, ListingStoreError, Config
from .images import WatermarkProcessor, WatermarkOptions, PlacementSpec
from .models import FieldDescriptor, RecordValidationError, validate_record
from .utils import UploadPipeline, UploadResult, BatchPolicy

__version__ = '1.0.0'
__all__ = [
    # API
    'ListingStoreClient',
    'PhotoStorageClient',
    'ListingStoreError',
    'Config',
    # Images
    'WatermarkProcessor',
    'WatermarkOptions',
    'PlacementSpec',
    # Models
    'FieldDescriptor',
    'RecordValidationError',
    'validate_record',
    # Utils
    'UploadPipeline',
    'UploadResult',
    'BatchPolicy'
]
