"""
Domain models for the shortener core.

URLRecord is the unit every storage backend persists; the ORM row for the
relational backend lives in shortener_core.database.tables.
"""

from .record import URLRecord, BatchItem, BatchResult, DeletionState, DeletionStatus

__all__ = ["URLRecord", "BatchItem", "BatchResult", "DeletionState", "DeletionStatus"]
