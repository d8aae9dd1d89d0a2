"""
Hosted listings store API Package
"""
from .client import (
    ListingStoreClient, PhotoStorageClient, ListingStoreError,
    StoreNotConfiguredError, create_clients
)
from .config import Config, configure_logging

__all__ = [
    'ListingStoreClient',
    'PhotoStorageClient',
    'ListingStoreError',
    'StoreNotConfiguredError',
    'create_clients',
    'Config',
    'configure_logging',
]
