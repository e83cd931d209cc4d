"""Storage layer - connection pool, schema and error taxonomy."""

from src.storage.database import Database
from src.storage.errors import StorageError, UniqueViolation

__all__ = ["Database", "StorageError", "UniqueViolation"]
