"""Custom exception classes for the offline cache."""


class OfflineCacheError(Exception):
    """Base exception for offline cache errors."""
    pass


class NetworkError(OfflineCacheError):
    """Raised when a request never reached the server (DNS, connection, timeout).

    HTTP error statuses are not network errors.
    """

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        message = f"Network request to {url} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InstallError(OfflineCacheError):
    """Raised when precaching the static asset manifest fails."""
    pass


class LifecycleError(OfflineCacheError):
    """Raised when an operation is not valid in the controller's current state."""
    pass


class StorageError(OfflineCacheError):
    """Raised when the cache storage backend fails."""
    pass
