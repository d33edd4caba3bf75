class ArchiveRequestError(Exception):
    """Raised when the archive service could not be reached; the job is retried."""
