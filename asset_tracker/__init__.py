"""
Asset tracker: inventory store for IT equipment.

Assets, activity logs and stock-take audit logs live in memory inside
`InventoryStore`, mirrored to a key/value metadata store and an async image
store.
"""

from .audit import AuditSession, ScanOutcome
from .blob_store import ImageBlobStore
from .errors import (
    ImageStoreError,
    InvalidTransitionError,
    InventoryError,
    StorageError,
    StorageQuotaExceededError,
    StorageWriteError,
)
from .kv_store import KeyValueStore
from .models import (
    Asset,
    AssetStatus,
    AuditLog,
    AuditStatus,
    Condition,
    Department,
    LogAction,
    LogEntry,
    VerificationStatus,
)
from .store import CommitResult, InventorySnapshot, InventoryStore

__version__ = "1.0.0"

__all__ = [
    "Asset",
    "AssetStatus",
    "AuditLog",
    "AuditSession",
    "AuditStatus",
    "CommitResult",
    "Condition",
    "Department",
    "ImageBlobStore",
    "ImageStoreError",
    "InvalidTransitionError",
    "InventoryError",
    "InventorySnapshot",
    "InventoryStore",
    "KeyValueStore",
    "LogAction",
    "LogEntry",
    "ScanOutcome",
    "StorageError",
    "StorageQuotaExceededError",
    "StorageWriteError",
    "VerificationStatus",
]
