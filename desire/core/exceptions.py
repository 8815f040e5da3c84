from typing import Optional, Any


class DesireError(Exception):
    """
    Base exception for the Desire session engine.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class PreconditionError(DesireError):
    """
    Raised when an operation needs a signed-in identity and there is none.
    Nothing has been sent to any store when this is raised.
    """
    def __init__(self, message: str = "User ID missing", details: Optional[Any] = None):
        super().__init__(message, code="NO_IDENTITY", status_code=409, details=details)


class ResourceNotFoundError(DesireError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class ValidationError(DesireError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class RemoteStoreError(DesireError):
    """
    Raised when the remote document store rejects a read or write.
    """
    def __init__(self, message: str = "Remote store error", details: Optional[Any] = None, code: str = "REMOTE_STORE_ERROR"):
        super().__init__(message, code=code, status_code=502, details=details)


class PartialSyncError(RemoteStoreError):
    """
    Raised when some upserts of a bulk pantry write failed.
    details carries the "failed" and "succeeded" names; the succeeded ones
    stay on the remote side.
    """
    def __init__(self, message: str = "Failed to save pantry", details: Optional[Any] = None):
        super().__init__(message, details=details, code="PARTIAL_SYNC_ERROR")


class LocalPersistenceError(DesireError):
    """
    Raised when the local key-value store fails to record onboarding progress.
    """
    def __init__(self, message: str = "Failed to save onboarding progress", details: Optional[Any] = None):
        super().__init__(message, code="LOCAL_PERSISTENCE_ERROR", status_code=500, details=details)
