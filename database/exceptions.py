"""Exceptions raised by the database layer."""


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class DatabaseSchemaError(DatabaseError):
    """Raised when schema files are missing, invalid or fail to apply."""
    pass


class StoreUnavailableError(DatabaseError):
    """Raised when the backing store is unreachable or an operation times out.

    Safe to retry from the client.
    """
    pass


class DuplicateKeyError(DatabaseError):
    """Raised when an insert or update violates a unique constraint."""

    def __init__(self, collection: str, field: str):
        super().__init__(f"Duplicate value for {collection}.{field}")
        self.collection = collection
        self.field = field
