"""Storage error taxonomy shared by every repository.

Repositories translate asyncpg exceptions at the boundary so callers can
tell an expected unique-constraint conflict (part of normal control flow
for claims and delivery receipts) from every other storage failure.
"""

import asyncpg


class StorageError(Exception):
    """Base class for storage failures surfaced by repositories."""


class UniqueViolation(StorageError):
    """An insert was rejected by a unique constraint.

    Attributes:
        constraint: Name of the violated constraint, when the driver reports it.
    """

    def __init__(self, message: str, constraint: str | None = None):
        super().__init__(message)
        self.constraint = constraint


def translate_unique_violation(exc: asyncpg.UniqueViolationError) -> UniqueViolation:
    """Build a UniqueViolation from the asyncpg exception."""
    constraint = getattr(exc, "constraint_name", None)
    return UniqueViolation(str(exc), constraint=constraint)
