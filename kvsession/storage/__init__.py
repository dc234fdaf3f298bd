"""
Storage module: embedded bucketed key-value engine and bucket adapter.
"""

from kvsession.storage.engine import (
    Bucket,
    EngineStats,
    KVEngine,
    Transaction,
)
from kvsession.storage.bucket import BucketStore

__all__ = [
    "Bucket",
    "EngineStats",
    "KVEngine",
    "Transaction",
    "BucketStore",
]
