"""
External storage adapters: blob store for raw files, keyed store for records.
"""

from .blob_store import BlobStore, LocalBlobStore, S3BlobStore
from .keyed_store import MAX_BATCH_ITEMS, DynamoDBKeyedStore, InMemoryKeyedStore, KeyedStore

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "KeyedStore",
    "InMemoryKeyedStore",
    "DynamoDBKeyedStore",
    "MAX_BATCH_ITEMS",
]
