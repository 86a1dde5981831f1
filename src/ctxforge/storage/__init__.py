"""SQL storage for context memory.

Provides the async SQLAlchemy database wrapper, the ORM model for saved
memory and the SqlPersistenceAdapter implementing the persistence boundary.
"""

from ctxforge.storage.base_model import Base
from ctxforge.storage.context_repository import SqlPersistenceAdapter
from ctxforge.storage.database import Database, DatabaseConfig
from ctxforge.storage.models import ContextMemoryModel

__all__ = [
    "Base",
    "ContextMemoryModel",
    "Database",
    "DatabaseConfig",
    "SqlPersistenceAdapter",
]
