"""
Consistency checks between the catalog and the upload tree.

Requests never lock the upload tree, so the catalog and the files can drift
apart: a generation run may have failed, a deletion cascade may have
stopped halfway, or a process may have died between steps. ``reconcile``
reports the drift; ``purge_orphans`` removes files that no record owns.
Nothing is repaired unless asked for.
"""

from dataclasses import dataclass, field

from ..errors import StorageError
from ..logging_config import get_logger, log_user_action
from .asset_store import DERIVATIVES, VARIANT_ORDER, AssetStore, Variant
from .catalog import PhotoCatalog

logger = get_logger(__name__)


@dataclass
class ReconciliationReport:
    """Drift between catalog records and stored files."""

    photo_count: int = 0
    original_count: int = 0
    # photo id -> derivative variants that are absent
    missing_derivatives: dict[str, list[str]] = field(default_factory=dict)
    # originals on disk with no record
    orphan_files: list[str] = field(default_factory=list)
    # records whose original is absent
    phantom_records: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not (self.missing_derivatives or self.orphan_files or self.phantom_records)

    def to_dict(self) -> dict:
        return {
            "photo_count": self.photo_count,
            "original_count": self.original_count,
            "missing_derivatives": {key: list(value) for key, value in self.missing_derivatives.items()},
            "orphan_files": list(self.orphan_files),
            "phantom_records": list(self.phantom_records),
            "consistent": self.consistent,
        }


def reconcile(store: AssetStore, catalog: PhotoCatalog) -> ReconciliationReport:
    """
    Compare the catalog against the upload tree.

    Raises:
        PersistenceError: If the catalog cannot be read
        StorageError: If the upload directory cannot be listed
    """
    photos = catalog.list_all()
    originals = set(store.list_originals())
    catalogued = {photo.filename for photo in photos}

    report = ReconciliationReport(photo_count=len(photos), original_count=len(originals))

    for photo in photos:
        if photo.filename not in originals:
            report.phantom_records.append(photo.id)
            continue

        missing = [variant.value for variant, present in store.derivative_status(photo.filename).items() if not present]
        if missing:
            report.missing_derivatives[photo.id] = missing

    report.orphan_files = sorted(originals - catalogued)

    logger.info(
        "reconciliation_completed",
        photo_count=report.photo_count,
        original_count=report.original_count,
        missing_derivatives=len(report.missing_derivatives),
        orphan_files=len(report.orphan_files),
        phantom_records=len(report.phantom_records),
    )
    return report


def purge_orphans(store: AssetStore, report: ReconciliationReport) -> list[str]:
    """
    Remove every variant of each orphan original listed in ``report``.

    Derivatives already gone are skipped; any other failure is raised.

    Returns:
        Filenames whose original was removed
    """
    purged = []

    for filename in report.orphan_files:
        for variant in VARIANT_ORDER:
            if variant in DERIVATIVES and not store.has_variant(filename, variant):
                continue
            try:
                store.remove_variant(filename, variant)
            except StorageError:
                logger.error("orphan_purge_failed", filename=filename, variant=variant.value)
                raise
            if variant is Variant.ORIGINAL:
                purged.append(filename)

    log_user_action(None, "orphans_purged", count=len(purged), filenames=purged)
    return purged
