class DatabaseError(Exception):
    """Base exception for persistence-related errors."""


class SubjectNotFoundError(DatabaseError):
    """Raised when a bookmark referenced by a job does not exist."""


class MigrationError(DatabaseError):
    """Raised when a schema migration cannot be applied."""
