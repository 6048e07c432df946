class FinVaultError(Exception):
    """Base exception for the offline core."""
    pass


class StorageInitError(FinVaultError):
    """Local database could not be opened; the store continues memory-only."""
    pass


class PersistenceError(FinVaultError):
    """A single local write failed. The in-memory cache was left untouched."""
    pass


class SyncDeliveryError(FinVaultError):
    """A queued item could not be delivered to its REST endpoint."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UnknownCollectionError(FinVaultError, KeyError):
    def __init__(self, collection: str):
        super().__init__(f"Unknown collection: {collection}")
        self.collection = collection

    def __str__(self) -> str:
        return self.args[0]
