"""
Exception types raised by the asset tracker.
"""


class InventoryError(Exception):
    """Base class for asset tracker errors"""
    pass


class StorageError(InventoryError):
    """A persistence layer could not complete a read or write"""
    pass


class StorageWriteError(StorageError):
    """Writing to the metadata store failed"""
    pass


class StorageQuotaExceededError(StorageWriteError):
    """The metadata store would grow past its size quota"""

    def __init__(self, key: str, required: int, quota: int):
        self.key = key
        self.required = required
        self.quota = quota
        super().__init__(
            f"Storage quota exceeded while saving '{key}': "
            f"{required} bytes needed, quota is {quota} bytes"
        )


class ImageStoreError(StorageError):
    """Reading or writing asset images failed"""
    pass


class InvalidTransitionError(InventoryError):
    """A status change is not in the allowed transition table"""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Status change from '{current}' to '{requested}' is not allowed")
