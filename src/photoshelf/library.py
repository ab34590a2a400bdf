"""
Entry point used by the request layer.

``PhotoLibrary`` bundles the asset store, catalog and derivative generator
and exposes every operation a web front end needs: upload, delete, single
photo lookup, gallery listing and tag filtering. Results are plain data
objects with ``to_dict()`` so any rendering layer can consume them.
"""

from dataclasses import dataclass, field

from .errors import NotFoundError, ValidationError
from .logging_config import get_logger
from .models.photo import PhotoRecord
from .pipelines.deletion import DeletionOutcome, DeletionPipeline
from .pipelines.ingestion import IngestionPipeline, IngestionResult, UploadedFile
from .services.asset_store import AssetStore, get_asset_store
from .services.catalog import PhotoCatalog, get_photo_catalog
from .services.derivatives import DerivativeGenerator, GenerationReport, get_derivative_generator
from .services.maintenance import ReconciliationReport, purge_orphans, reconcile
from .services.tags import normalize_tags, tag_vocabulary, unique_tags

logger = get_logger(__name__)


@dataclass
class GalleryView:
    """Photos to display together with the tag vocabulary for the filter UI."""

    photos: list[PhotoRecord]
    tags: list[str]
    selected_tags: list[str] = field(default_factory=list)
    # filename -> whether both derivatives exist
    derivatives: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "photos": [
                {**photo.to_dict(), "has_derivatives": self.derivatives.get(photo.filename, False)}
                for photo in self.photos
            ],
            "tags": list(self.tags),
            "selected_tags": list(self.selected_tags),
        }


class PhotoLibrary:
    """Facade over the photo asset lifecycle."""

    def __init__(
        self,
        store: AssetStore | None = None,
        catalog: PhotoCatalog | None = None,
        generator: DerivativeGenerator | None = None,
        **ingestion_options,
    ) -> None:
        self.store = store or get_asset_store()
        self.catalog = catalog or get_photo_catalog()
        self.generator = generator or get_derivative_generator()
        self.ingestion = IngestionPipeline(self.store, self.catalog, self.generator, **ingestion_options)
        self.deletion = DeletionPipeline(self.store, self.catalog)

    def setup(self) -> None:
        """Create the upload directory layout and open the catalog."""
        self.store.ensure_layout()
        self.catalog.count()

    def upload(
        self, upload: UploadedFile | None, raw_tags: str | None = None, user_id: str | None = None
    ) -> IngestionResult:
        return self.ingestion.ingest(upload, raw_tags=raw_tags, uploaded_by=user_id)

    def delete(self, photo_id: str | None, filename: str | None, user_id: str | None = None) -> DeletionOutcome:
        return self.deletion.delete(photo_id, filename, deleted_by=user_id)

    def get_photo(self, photo_id: str) -> PhotoRecord:
        """
        Look up one photo.

        Raises:
            ValidationError: If no identifier was given
            NotFoundError: If no record matches
            PersistenceError: If the catalog query fails
        """
        if not photo_id:
            raise ValidationError("A photo identifier is required.", code="photo_id_missing")

        photo = self.catalog.get(photo_id)
        if photo is None:
            raise NotFoundError("Image not found!", details={"photo_id": photo_id})
        return photo

    def list_photos(self) -> GalleryView:
        """All photos and the full tag vocabulary."""
        photos = self.catalog.list_all()
        return GalleryView(photos=photos, tags=tag_vocabulary(photos), derivatives=self._derivative_map(photos))

    def filter_photos(self, raw_tag_list: str | list[str] | None) -> GalleryView:
        """
        Photos carrying any of the requested tags.

        A blank request falls back to the full listing. The vocabulary is
        computed from the matching photos.
        """
        if isinstance(raw_tag_list, str) or raw_tag_list is None:
            requested = normalize_tags(raw_tag_list)
        else:
            requested = [tag for item in raw_tag_list for tag in normalize_tags(item)]
        requested = unique_tags(requested)

        if not requested:
            return self.list_photos()

        photos = self.catalog.find_by_tags(requested)
        logger.info("photos_filtered", selected_tags=requested, photos_count=len(photos))
        return GalleryView(
            photos=photos,
            tags=tag_vocabulary(photos),
            selected_tags=requested,
            derivatives=self._derivative_map(photos),
        )

    def regenerate_derivatives(self) -> GenerationReport:
        """Run the derivative generator again over the upload directory."""
        return self.generator.generate(self.store.root)

    def reconcile(self) -> ReconciliationReport:
        return reconcile(self.store, self.catalog)

    def purge_orphans(self) -> list[str]:
        return purge_orphans(self.store, self.reconcile())

    def _derivative_map(self, photos: list[PhotoRecord]) -> dict[str, bool]:
        return {photo.filename: self.store.has_derivatives(photo.filename) for photo in photos}


# Global library instance
_photo_library: PhotoLibrary | None = None


def get_photo_library() -> PhotoLibrary:
    """Get the global library wired from configuration."""
    global _photo_library
    if _photo_library is None:
        _photo_library = PhotoLibrary()
    return _photo_library
