"""Deletion pipeline: catalog record first, then the three variant files.

The record goes first so that an interrupted cleanup leaves orphan files
(recoverable, see ``services.maintenance``) rather than a catalog entry that
points at missing files. Files are removed in the order original, thumbnail,
preview; the first failure stops the cascade and is raised with an outcome
describing what was already removed.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..errors import NotFoundError, StorageError, ValidationError
from ..logging_config import get_logger, log_user_action
from ..models.photo import PhotoRecord
from ..services.asset_store import VARIANT_ORDER, AssetStore, Variant, get_asset_store
from ..services.catalog import PhotoCatalog, get_photo_catalog

logger = get_logger(__name__)


class DeletionStatus(Enum):
    FULLY_REMOVED = "fully_removed"
    PARTIALLY_REMOVED = "partially_removed"
    CATALOG_ONLY_REMOVED = "catalog_only_removed"


@dataclass
class DeletionOutcome:
    """What a deletion request actually removed."""

    photo: PhotoRecord
    removed_variants: list[Variant] = field(default_factory=list)
    failed_variant: Variant | None = None
    error: str | None = None

    @property
    def status(self) -> DeletionStatus:
        if self.failed_variant is None:
            return DeletionStatus.FULLY_REMOVED
        if self.removed_variants:
            return DeletionStatus.PARTIALLY_REMOVED
        return DeletionStatus.CATALOG_ONLY_REMOVED

    @property
    def remaining_variants(self) -> list[Variant]:
        """Variants that may still be on disk."""
        return [variant for variant in VARIANT_ORDER if variant not in self.removed_variants]

    def to_dict(self) -> dict:
        return {
            "photo_id": self.photo.id,
            "filename": self.photo.filename,
            "status": self.status.value,
            "removed_variants": [variant.value for variant in self.removed_variants],
            "failed_variant": self.failed_variant.value if self.failed_variant else None,
            "remaining_variants": [variant.value for variant in self.remaining_variants],
            "error": self.error,
        }


class DeletionPipeline:
    """Removes a photo's record and every on-disk variant."""

    def __init__(self, store: AssetStore | None = None, catalog: PhotoCatalog | None = None) -> None:
        self.store = store or get_asset_store()
        self.catalog = catalog or get_photo_catalog()

    def delete(self, photo_id: str | None, filename: str | None, deleted_by: str | None = None) -> DeletionOutcome:
        """
        Delete one photo.

        Args:
            photo_id: Catalog identifier
            filename: Stored filename as held by the caller from a prior listing.
                Only checked for presence: files are removed under the
                filename of the record the catalog hands back, and a
                mismatch is logged as ``deletion_filename_mismatch``
            deleted_by: Identity from the authenticated request context

        Returns:
            DeletionOutcome with status ``fully_removed``

        Raises:
            ValidationError: Missing identifier or filename; nothing touched
            NotFoundError: No such record; no file touched
            PersistenceError: The catalog delete failed; no file touched
            StorageError: A variant removal failed; ``error.outcome`` says
                which variants were removed before the failure
        """
        if not photo_id or not filename:
            raise ValidationError(
                "You must select a photo to delete it.",
                code="photo_not_selected",
                details={"photo_id": photo_id, "filename": filename},
            )

        record = self.catalog.delete(photo_id)
        if record is None:
            raise NotFoundError("Image not found!", details={"photo_id": photo_id, "filename": filename})

        if record.filename != filename:
            logger.warning(
                "deletion_filename_mismatch",
                photo_id=photo_id,
                requested_filename=filename,
                record_filename=record.filename,
            )

        outcome = DeletionOutcome(photo=record)

        for variant in VARIANT_ORDER:
            try:
                self.store.remove_variant(record.filename, variant)
            except StorageError as e:
                outcome.failed_variant = variant
                outcome.error = str(e)
                e.outcome = outcome
                e.details.update(outcome.to_dict())
                logger.error("deletion_cascade_aborted", **outcome.to_dict())
                raise
            outcome.removed_variants.append(variant)

        log_user_action(deleted_by, "photo_deleted", photo_id=record.id, filename=record.filename)
        return outcome
