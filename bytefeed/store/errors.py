"""Domain exceptions for the state store.

This module defines a hierarchy of exceptions for the state store layer,
separating infrastructure errors (database issues) from domain errors
(missing records, uniqueness violations).
"""


class StateStoreError(Exception):
    """Base exception for all state store errors.

    All exceptions raised by the state store should inherit from this class
    to enable consistent error handling at the application level.
    """


class ConnectionError(StateStoreError):
    """Raised when database connection fails or is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class EditionNotFoundError(StateStoreError):
    """Raised when a requested edition does not exist."""

    def __init__(self, edition_id: str) -> None:
        self.edition_id = edition_id
        super().__init__(f"Edition not found: {edition_id}")


class EditionClaimLostError(StateStoreError):
    """Raised when a worker writes to an edition it no longer holds.

    Another run recovered the stale claim and took the edition over, so
    the original worker must drop its result.
    """

    def __init__(self, edition_id: str) -> None:
        self.edition_id = edition_id
        super().__init__(f"Processing claim lost for edition: {edition_id}")


class ContentByteNotFoundError(StateStoreError):
    """Raised when a requested content byte does not exist.

    Engagement operations on a missing byte surface this instead of
    silently doing nothing.
    """

    def __init__(self, byte_id: str) -> None:
        self.byte_id = byte_id
        super().__init__(f"Content byte not found: {byte_id}")


class SourceNotFoundError(StateStoreError):
    """Raised when a requested source does not exist."""

    def __init__(self, source_id: str) -> None:
        self.source_id = source_id
        super().__init__(f"Source not found: {source_id}")


class DuplicateFingerprintError(StateStoreError):
    """Raised when an edition insert collides with an existing fingerprint.

    The unique fingerprint constraint is what decides concurrent
    ingestions of the same document; callers treat this as the
    duplicate path.
    """

    def __init__(self, fingerprint: str) -> None:
        self.fingerprint = fingerprint
        super().__init__(f"Edition fingerprint already exists: {fingerprint[:16]}")


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
