"""
Listing Data Models
"""
from .listing import (
    PROPERTY_ID,
    ListingStatus,
    PropertyType,
    TaxPayer,
    FieldKind,
    FieldDescriptor,
    RecordValidationError,
    DEFAULT_FIELDS,
    load_field_descriptors,
    validate_record,
    next_property_id,
    numeric_id,
    as_text,
    is_blank,
)

__all__ = [
    'PROPERTY_ID',
    'ListingStatus',
    'PropertyType',
    'TaxPayer',
    'FieldKind',
    'FieldDescriptor',
    'RecordValidationError',
    'DEFAULT_FIELDS',
    'load_field_descriptors',
    'validate_record',
    'next_property_id',
    'numeric_id',
    'as_text',
    'is_blank',
]
