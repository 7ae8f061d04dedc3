"""Custom exception classes for the HashVault service."""

from typing import Any, Dict, Optional


class VaultException(Exception):
    """
    Base exception class for all HashVault errors.
    """

    def extra(self) -> Dict[str, Any]:
        """Structured fields added to the error response body."""
        return {}


class MissingParameterError(VaultException):
    """
    Raised when a required request parameter is absent.
    """

    def __init__(self, parameter: str):
        super().__init__(f"Missing required parameter: {parameter}")
        self.parameter = parameter

    def extra(self) -> Dict[str, Any]:
        return {"parameter": self.parameter}


class ChunkTooLargeError(VaultException):
    """
    Raised when a chunk exceeds the per-chunk ceiling.
    """

    def __init__(self, size: int, limit: int):
        super().__init__(f"Chunk size {size} exceeds the {limit} byte limit")
        self.size = size
        self.limit = limit

    def extra(self) -> Dict[str, Any]:
        return {"limit": self.limit, "size": self.size}


class InvalidUploadIdError(VaultException):
    """
    Raised when an upload id cannot be used as a staging key.
    """
    pass


class IncompleteUploadError(VaultException):
    """
    Raised when finalize finds a chunk index missing from staging.
    """

    def __init__(self, upload_id: str, missing_index: int):
        super().__init__(f"Missing chunk {missing_index} for upload {upload_id}")
        self.upload_id = upload_id
        self.missing_index = missing_index

    def extra(self) -> Dict[str, Any]:
        return {"missing_index": self.missing_index}


class UploadInProgressError(VaultException):
    """
    Raised when another process already claimed finalize for an upload.
    """
    pass


class SizeParseError(VaultException):
    """
    Raised when a declared size is absent or not an integer.
    """

    def __init__(self, value: Any):
        super().__init__(f"Invalid size: {value!r}")
        self.value = value


class OverFreeTierLimitError(VaultException):
    """
    Raised when a single object is larger than the free-tier ceiling.
    """

    def __init__(self, requested: int, limit: int):
        super().__init__("File size exceeds free storage limit")
        self.requested = requested
        self.limit = limit

    def extra(self) -> Dict[str, Any]:
        return {"limit": self.limit, "fileSize": self.requested}


class InsufficientCapacityError(VaultException):
    """
    Raised when the identity does not have enough remaining capacity.
    """

    def __init__(self, required: int, available: int):
        super().__init__("Not enough storage space")
        self.required = required
        self.available = available

    def extra(self) -> Dict[str, Any]:
        return {"available": self.available, "required": self.required}


class UpstreamStorageError(VaultException):
    """
    Raised when the content store rejects or fails a request.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundOrUnauthorizedError(VaultException):
    """
    Raised when a record does not exist or is not owned by the caller.
    """
    pass


class DuplicateContentError(VaultException):
    """
    Raised when a content identifier is already registered.
    """

    def __init__(self, cid: str):
        super().__init__(f"Content {cid} is already registered")
        self.cid = cid


class DuplicatePurchaseError(VaultException):
    """
    Raised when a purchase transaction hash was already applied.
    """
    pass


class InvalidParameterError(VaultException):
    """
    Raised when a request parameter is present but out of range or malformed.
    """

    def __init__(self, parameter: str, reason: str):
        super().__init__(f"Invalid parameter {parameter}: {reason}")
        self.parameter = parameter

    def extra(self) -> Dict[str, Any]:
        return {"parameter": self.parameter}
