"""
Models module for photoshelf.

- PhotoRecord: catalog entry for a stored photo
- Database schema and table definitions
- DatabaseManager: DuckDB connection and schema management
"""

from .database import DatabaseManager, create_database, get_database_manager
from .photo import PhotoRecord
from .schema import get_schema_statements, validate_schema_compatibility

__all__ = [
    "PhotoRecord",
    "DatabaseManager",
    "create_database",
    "get_database_manager",
    "get_schema_statements",
    "validate_schema_compatibility",
]
