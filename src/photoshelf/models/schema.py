"""
Catalog schema definitions for photoshelf.
"""

PHOTOS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS photos (
    id TEXT PRIMARY KEY,
    filename TEXT NOT NULL UNIQUE,
    original_name TEXT NOT NULL,
    tags VARCHAR[] NOT NULL,
    uploaded_by TEXT,
    uploaded_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

PHOTOS_TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_photos_uploaded_at ON photos(uploaded_at DESC);",
]

PHOTO_COLUMNS = ("id", "filename", "original_name", "tags", "uploaded_by", "uploaded_at")

ALL_SCHEMA_STATEMENTS = [PHOTOS_TABLE_SCHEMA] + PHOTOS_TABLE_INDEXES


def get_schema_statements() -> list[str]:
    """
    Get all database schema creation statements.

    Returns:
        List of SQL statements to create tables and indexes
    """
    return ALL_SCHEMA_STATEMENTS


def validate_schema_compatibility() -> bool:
    """
    Check that every PhotoRecord column appears in the table definition.

    Returns:
        True if schema is compatible, False otherwise
    """
    schema_lower = PHOTOS_TABLE_SCHEMA.lower()
    return all(column in schema_lower for column in PHOTO_COLUMNS)
