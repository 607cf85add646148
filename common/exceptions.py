"""Custom exception classes shared by the staging area and the gateway."""

from typing import Optional


class ChunkRelayError(Exception):
    """
    Base exception class for all upload errors leaving the coordinator.
    """
    pass


class ValidationError(ChunkRelayError):
    """
    Raised when a required identifier or parameter is missing or invalid.
    """
    pass


class ChunkTooLargeError(ValidationError):
    """
    Raised when a posted chunk exceeds the configured chunk size ceiling.
    """
    pass


class UploadNotFoundError(ChunkRelayError):
    """
    Raised when an upload id has no staged state.
    """
    pass


class ChunkPersistError(ChunkRelayError):
    """
    Raised when a chunk could not be persisted within its retry budget.
    """

    def __init__(self, index: int, attempts: int, reason: Optional[str] = None):
        message = f"Chunk {index} failed after {attempts} attempts"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.index = index
        self.attempts = attempts


class MergeError(ChunkRelayError):
    """
    Raised when staged chunks cannot be merged into the artifact.
    """
    pass


class RemoteUploadError(ChunkRelayError):
    """
    Raised when the remote store rejects or fails to receive the artifact.
    """
    pass


class UploadFailedError(ChunkRelayError):
    """
    Wraps any other internal error, keeping its message for diagnostics.
    """
    pass
