# mergesurge/exceptions.py
"""
Errors raised while staging and merging a batch.

Every error derives from BatchSaveError so callers can catch the whole
family in one place. Driver errors are chained (``raise ... from e``) so the
original database message and traceback stay available.
"""

from typing import Optional


class BatchSaveError(Exception):
    """Base class for all batch staging/merge failures."""


class SchemaError(BatchSaveError):
    """Record type metadata is unusable, or the staging table could not be created."""


class ValidationError(BatchSaveError):
    """A record holds None in a column declared NOT NULL."""

    def __init__(self, message: str, field: Optional[str] = None, table: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.table = table


class InsertError(BatchSaveError):
    """The database rejected a row insert into the staging table."""

    def __init__(self, message: str, table: Optional[str] = None, sql: Optional[str] = None):
        super().__init__(message)
        self.table = table
        self.sql = sql


class MergeError(BatchSaveError):
    """The merge statement failed."""
