"""Data layer error hierarchy."""

from perch.errors import PerchError


class DataError(PerchError):
    """Base for all perch.data errors."""


class QueryError(DataError):
    """Raised when a SQL statement fails. The driver error is the cause."""


class PoolClosedError(DataError):
    """Raised when acquiring from a pool that is not open."""


class SessionReleasedError(DataError):
    """Raised when a session is used after its connection went back to the pool."""
