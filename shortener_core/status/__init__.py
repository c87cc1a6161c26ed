"""
Deletion status module.
Implements Strategy Pattern for where background deletion outcomes are kept.
"""

from .strategies import DeletionStatusStrategy, InMemoryDeletionStatus, RedisDeletionStatus
from .factory import DeletionStatusFactory, StatusBackend

__all__ = [
    "DeletionStatusStrategy",
    "InMemoryDeletionStatus",
    "RedisDeletionStatus",
    "DeletionStatusFactory",
    "StatusBackend",
]
