class AcquisitionError(Exception):
    """Base exception for thumbnail acquisition; a strategy raising it falls through."""


class CandidateRejectedError(AcquisitionError):
    """Raised when a downloaded candidate fails the security or size gate."""


class ThumbnailStorageError(AcquisitionError):
    """Raised when a thumbnail cannot be written to or removed from disk."""
