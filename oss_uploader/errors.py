"""Error taxonomy for upload orchestration."""
from pathlib import Path
from typing import Optional


class UploadError(RuntimeError):
    """Base class for orchestration errors."""


class HashFailure(UploadError):
    """Content hashing could not read or process a file."""

    def __init__(self, file: Path, reason: str):
        self.file = Path(file)
        super().__init__(f"Failed to hash {self.file.name}: {reason}")


class CredentialRefreshFailure(UploadError):
    """The credential-issuing endpoint was unreachable or rejected the request."""


class TransportFailure(UploadError):
    """The object-storage upload failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class TaskDiscarded(UploadError):
    """A queued task was removed before its turn arrived."""
