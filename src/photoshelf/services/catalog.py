"""
Photo catalog backed by DuckDB.

The catalog is the source of truth for whether a photo exists. It supports
create, point lookup, full scan, tag-membership queries and an atomic
delete that hands back the removed record.

Every DuckDB failure surfaces as PersistenceError; a missing record is a
``None`` result, never an exception, so callers can tell the two apart.

Usage:
    catalog = PhotoCatalog("data/photoshelf.duckdb")
    catalog.create(PhotoRecord.create_new("cat-1700000000000.jpg", "cat.jpg", ["pets"]))
    photos = catalog.find_by_tags(["pets", "dogs"])
"""

import threading
from datetime import UTC
from typing import Any

from ..config import get_database_path
from ..errors import PersistenceError
from ..logging_config import get_logger, log_error, log_user_action
from ..models.database import DatabaseManager, get_database_manager
from ..models.photo import PhotoRecord
from ..models.schema import PHOTO_COLUMNS

logger = get_logger(__name__)

_SELECT_COLUMNS = ", ".join(PHOTO_COLUMNS)


class PhotoCatalog:
    """
    Persistent record store for photo metadata.

    One DuckDB connection is shared by all callers and guarded by a lock, so
    the catalog can be used from concurrent request handlers.
    """

    def __init__(self, db_path: str | None = None):
        """
        Args:
            db_path: DuckDB file path, or ":memory:" for a throwaway catalog
        """
        self.db_path = db_path or get_database_path()
        self._db_manager: DatabaseManager | None = None
        self._lock = threading.RLock()

        logger.info("photo_catalog_initialized", db_path=self.db_path)

    @property
    def db_manager(self) -> DatabaseManager:
        """Get database manager, creating the database on first use."""
        if self._db_manager is None:
            try:
                self._db_manager = get_database_manager(self.db_path, create_if_missing=True)
            except Exception as e:
                raise PersistenceError(
                    f"Failed to open catalog database: {e}",
                    code="catalog_unavailable",
                    details={"db_path": self.db_path},
                    original_exception=e,
                ) from e
        return self._db_manager

    def _execute(self, operation: str, query: str, parameters: tuple | None = None, **context: Any) -> list[tuple]:
        with self._lock:
            try:
                return self.db_manager.execute_query(query, parameters)
            except PersistenceError:
                raise
            except Exception as e:
                log_error(e, {"operation": operation, "db_path": self.db_path, **context})
                raise PersistenceError(
                    f"Catalog {operation} failed: {e}",
                    details={"operation": operation, **context},
                    original_exception=e,
                ) from e

    @staticmethod
    def _row_to_record(row: tuple) -> PhotoRecord:
        return PhotoRecord.from_dict(dict(zip(PHOTO_COLUMNS, row)))

    def create(self, record: PhotoRecord) -> PhotoRecord:
        """
        Insert a new record.

        Raises:
            PersistenceError: If the record is invalid or the insert fails
        """
        if not record.validate():
            raise PersistenceError(
                "Invalid photo record",
                code="invalid_record",
                details={"photo_id": record.id, "filename": record.filename},
            )

        self._execute(
            "create",
            f"""INSERT INTO photos ({_SELECT_COLUMNS})
               VALUES (?, ?, ?, CAST(? AS VARCHAR[]), ?, ?)""",
            (
                record.id,
                record.filename,
                record.original_name,
                list(record.tags),
                record.uploaded_by,
                record.uploaded_at.astimezone(UTC).replace(tzinfo=None),
            ),
            photo_id=record.id,
            filename=record.filename,
        )

        log_user_action(
            record.uploaded_by,
            "photo_record_created",
            photo_id=record.id,
            filename=record.filename,
            tags=list(record.tags),
        )
        return record

    def delete(self, photo_id: str) -> PhotoRecord | None:
        """
        Remove a record by ID in one statement.

        Returns:
            The removed record, or None if no record matched

        Raises:
            PersistenceError: If the delete fails
        """
        rows = self._execute(
            "delete",
            f"DELETE FROM photos WHERE id = ? RETURNING {_SELECT_COLUMNS}",
            (photo_id,),
            photo_id=photo_id,
        )

        if not rows:
            logger.warning("photo_not_found_for_deletion", photo_id=photo_id)
            return None

        record = self._row_to_record(rows[0])
        logger.info("photo_record_deleted", photo_id=photo_id, filename=record.filename)
        return record

    def get(self, photo_id: str) -> PhotoRecord | None:
        """
        Point lookup by ID.

        Returns:
            PhotoRecord, or None if not found

        Raises:
            PersistenceError: If the query fails
        """
        rows = self._execute(
            "get",
            f"SELECT {_SELECT_COLUMNS} FROM photos WHERE id = ?",
            (photo_id,),
            photo_id=photo_id,
        )
        return self._row_to_record(rows[0]) if rows else None

    def list_all(self) -> list[PhotoRecord]:
        """Return every record, newest upload first."""
        rows = self._execute(
            "list_all",
            f"SELECT {_SELECT_COLUMNS} FROM photos ORDER BY uploaded_at DESC, id",
        )
        photos = [self._row_to_record(row) for row in rows]
        logger.debug("photos_listed", photos_count=len(photos))
        return photos

    def find_by_tags(self, tags: list[str] | tuple[str, ...] | set[str]) -> list[PhotoRecord]:
        """
        Return every record carrying at least one of ``tags``.

        Matching is exact and case-sensitive. An empty request matches nothing.
        """
        requested = sorted(set(tags))
        if not requested:
            return []

        rows = self._execute(
            "find_by_tags",
            f"""SELECT {_SELECT_COLUMNS} FROM photos
               WHERE list_has_any(tags, CAST(? AS VARCHAR[]))
               ORDER BY uploaded_at DESC, id""",
            (requested,),
            tags=requested,
        )
        photos = [self._row_to_record(row) for row in rows]
        logger.info("photos_found_by_tags", tags=requested, photos_count=len(photos))
        return photos

    def count(self) -> int:
        rows = self._execute("count", "SELECT COUNT(*) FROM photos")
        return rows[0][0] if rows else 0

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            if self._db_manager is not None:
                self._db_manager.close()
                self._db_manager = None

    def __enter__(self) -> "PhotoCatalog":
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()


# Global catalog instance
_photo_catalog: PhotoCatalog | None = None


def get_photo_catalog() -> PhotoCatalog:
    """Get the global catalog for the configured database path."""
    global _photo_catalog
    if _photo_catalog is None:
        _photo_catalog = PhotoCatalog()
    return _photo_catalog


def close_photo_catalog() -> None:
    """Close and drop the global catalog."""
    global _photo_catalog
    if _photo_catalog is not None:
        _photo_catalog.close()
        _photo_catalog = None
