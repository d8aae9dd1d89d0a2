from .bulk_operations import (
    BatchPolicy, UploadPipeline, UploadResult, export_zip, generate_upload_property_id
)

__all__ = [
    'BatchPolicy',
    'UploadPipeline',
    'UploadResult',
    'export_zip',
    'generate_upload_property_id',
]
