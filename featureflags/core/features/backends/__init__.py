"""
Flag store implementations.
"""

from .database import DatabaseFlagStore
from .memory import MemoryFlagStore

__all__ = [
    "DatabaseFlagStore",
    "MemoryFlagStore",
]
