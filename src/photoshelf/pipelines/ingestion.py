"""Ingestion pipeline: upload validation, placement, cataloguing, derivatives.

Steps run in order and the first failure stops the request:

1. validate the payload (present, allowed extension, size)
2. write the original under a derived, unique filename
3. insert the catalog record
4. run the derivative generator over the whole upload directory

A generation failure leaves the original and its record in place; the photo
simply has no derivatives until generation is run again.
"""

import re
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from ..config import get_max_upload_size, get_rollback_on_catalog_failure
from ..errors import GenerationError, PersistenceError, StorageError, ValidationError
from ..logging_config import get_logger, log_performance, log_user_action
from ..models.photo import PhotoRecord
from ..services.asset_store import AssetStore, Variant, get_asset_store
from ..services.catalog import PhotoCatalog, get_photo_catalog
from ..services.derivatives import DerivativeGenerator, GenerationReport, get_derivative_generator
from ..services.tags import normalize_tags

logger = get_logger(__name__)

# Case-sensitive; the suffix must end the name, trailing newline included
ALLOWED_EXTENSION = re.compile(r"\.(jpg|jpeg|png|gif)\Z")
ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "gif")

PREFIX_LENGTH = 4
SEPARATOR = "-"

# Attempts at a fresh filename when an exclusive create hits an existing file
MAX_PLACEMENT_ATTEMPTS = 3

_stamp_lock = threading.Lock()
_last_stamp_ms = 0


def next_timestamp_ms() -> int:
    """Current time in milliseconds, strictly increasing within this process."""
    global _last_stamp_ms
    with _stamp_lock:
        now_ms = time.time_ns() // 1_000_000
        _last_stamp_ms = max(now_ms, _last_stamp_ms + 1)
        return _last_stamp_ms


def is_allowed_image_name(original_name: str) -> bool:
    return bool(ALLOWED_EXTENSION.search(original_name))


def derive_stored_filename(original_name: str, timestamp_ms: int | None = None) -> str:
    """
    Build the stored filename for an upload.

    The first four characters of the base (everything before the first
    ``.``, or the whole base when shorter), a ``-``, a millisecond timestamp
    and the original extension from the first ``.`` onwards::

        >>> derive_stored_filename("holiday.jpg", 1700000000000)
        'holi-1700000000000.jpg'
        >>> derive_stored_filename("cat.png", 1700000000000)
        'cat-1700000000000.png'

    Raises:
        ValidationError: If the name has no extension
    """
    dot = original_name.find(".")
    if dot < 0:
        raise ValidationError(
            f"File name has no extension: {original_name!r}",
            code="missing_extension",
            details={"original_name": original_name},
        )

    stamp = next_timestamp_ms() if timestamp_ms is None else timestamp_ms
    return f"{original_name[:dot][:PREFIX_LENGTH]}{SEPARATOR}{stamp}{original_name[dot:]}"


@dataclass
class UploadedFile:
    """One file payload handed over by the request layer."""

    original_name: str
    data: bytes

    @classmethod
    def from_stream(cls, original_name: str, stream: BinaryIO) -> "UploadedFile":
        return cls(original_name=original_name, data=stream.read())

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadedFile":
        path = Path(path)
        return cls(original_name=path.name, data=path.read_bytes())

    @property
    def safe_name(self) -> str:
        """Client name without any directory part."""
        return PurePosixPath(self.original_name.replace("\\", "/")).name

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class IngestionResult:
    """Confirmation returned after a successful upload."""

    photo: PhotoRecord
    message: str
    generation: GenerationReport | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "photo": self.photo.to_dict(),
            "message": self.message,
            "generation": self.generation.to_dict() if self.generation else None,
            "warnings": list(self.warnings),
        }


def confirmation_message(original_name: str, tags: list[str] | tuple[str, ...]) -> str:
    return f"Successfully uploaded: {original_name}! With tags: {', '.join(tags) or '(none)'}"


class IngestionPipeline:
    """Turns an uploaded file into a catalogued photo with derivatives."""

    def __init__(
        self,
        store: AssetStore | None = None,
        catalog: PhotoCatalog | None = None,
        generator: DerivativeGenerator | None = None,
        max_upload_size: int | None = None,
        rollback_on_catalog_failure: bool | None = None,
    ) -> None:
        self.store = store or get_asset_store()
        self.catalog = catalog or get_photo_catalog()
        self.generator = generator or get_derivative_generator()
        self.max_upload_size = max_upload_size if max_upload_size is not None else get_max_upload_size()
        self.rollback_on_catalog_failure = (
            rollback_on_catalog_failure if rollback_on_catalog_failure is not None else get_rollback_on_catalog_failure()
        )

    def validate_upload(self, upload: UploadedFile | None) -> UploadedFile:
        """
        Reject an upload before anything touches disk or catalog.

        Returns:
            The accepted upload

        Raises:
            ValidationError: No file, disallowed extension or oversized payload
        """
        if upload is None or not upload.original_name:
            raise ValidationError("You forgot to select a file.", code="no_file")

        name = upload.safe_name
        if not is_allowed_image_name(name):
            raise ValidationError(
                "Only image files are allowed!",
                code="unsupported_file_type",
                details={"original_name": upload.original_name, "allowed": list(ALLOWED_EXTENSIONS)},
            )

        if self.max_upload_size and upload.size > self.max_upload_size:
            raise ValidationError(
                f"File '{name}' is too large ({upload.size} bytes). Maximum size: {self.max_upload_size} bytes",
                code="file_too_large",
                details={"original_name": name, "file_size": upload.size, "max_size": self.max_upload_size},
            )

        logger.debug("upload_validated", original_name=name, size=upload.size)
        return upload

    def ingest(
        self,
        upload: UploadedFile | None,
        raw_tags: str | None = None,
        uploaded_by: str | None = None,
    ) -> IngestionResult:
        """
        Run the full ingestion pipeline for one upload.

        Args:
            upload: File payload, or None when the form carried no file
            raw_tags: Free-text tags separated by commas and/or whitespace
            uploaded_by: Identity from the authenticated request context

        Returns:
            IngestionResult with the new record and a confirmation message

        Raises:
            ValidationError: Before any side effect
            StorageError: Original could not be stored; nothing catalogued
            PersistenceError: Record could not be inserted
            GenerationError: This upload's derivatives failed; original and record
                are kept. Failures for other originals become ``warnings``
        """
        start_time = time.monotonic()
        upload = self.validate_upload(upload)
        original_name = upload.safe_name

        logger.info("ingestion_started", original_name=original_name, size=upload.size, uploaded_by=uploaded_by)

        filename = self._place_original(upload, original_name)

        tags = normalize_tags(raw_tags)
        record = PhotoRecord.create_new(
            filename=filename,
            original_name=original_name,
            tags=tags,
            uploaded_by=uploaded_by,
        )

        try:
            self.catalog.create(record)
        except PersistenceError as e:
            self._handle_catalog_failure(e, filename)
            raise

        report = self._generate_derivatives(record)
        warnings = [f"Thumbnails could not be created for {name}: {reason}" for name, reason in report.failed.items()]

        duration = time.monotonic() - start_time
        log_performance("ingest_photo", duration, photo_id=record.id, filename=filename)
        log_user_action(uploaded_by, "photo_uploaded", photo_id=record.id, filename=filename, tags=tags)

        return IngestionResult(
            photo=record,
            message=confirmation_message(original_name, tags),
            generation=report,
            warnings=warnings,
        )

    def _place_original(self, upload: UploadedFile, original_name: str) -> str:
        """Write the original under a fresh name, retrying if that name is taken."""
        attempt = 1
        while True:
            filename = derive_stored_filename(original_name)
            try:
                self.store.write_original(filename, upload.data)
                return filename
            except StorageError as e:
                if not isinstance(e.original_exception, FileExistsError) or attempt >= MAX_PLACEMENT_ATTEMPTS:
                    raise
                logger.warning("stored_filename_taken", filename=filename, attempt=attempt)
                attempt += 1

    def _handle_catalog_failure(self, error: PersistenceError, filename: str) -> None:
        """Remove the stored original when configured to; otherwise leave it as an orphan."""
        error.details["filename"] = filename

        if not self.rollback_on_catalog_failure:
            logger.warning("orphan_original_left", filename=filename)
            error.details["orphaned_original"] = True
            return

        try:
            self.store.remove_variant(filename, Variant.ORIGINAL)
            error.details["original_rolled_back"] = True
            logger.info("original_rolled_back", filename=filename)
        except StorageError as rollback_error:
            error.details["original_rolled_back"] = False
            error.details["rollback_error"] = str(rollback_error)
            logger.error("original_rollback_failed", filename=filename, error=str(rollback_error))

    def _generate_derivatives(self, record: PhotoRecord) -> GenerationReport:
        """
        Run the generator over the upload directory.

        Failures confined to other originals are returned in the report; only
        a failure for this upload's own derivatives is raised.
        """
        try:
            return self.generator.generate(self.store.root)
        except Exception as e:
            report = getattr(e, "report", None)
            if (
                report is not None
                and record.filename not in report.failed
                and self.store.has_derivatives(record.filename)
            ):
                logger.warning(
                    "derivatives_failed_for_other_files",
                    photo_id=record.id,
                    filename=record.filename,
                    failed=sorted(report.failed),
                )
                return report

            inner_details = e.details if isinstance(e, GenerationError) else {}
            error = GenerationError(
                "Failure to create thumbnails!",
                code=e.code if isinstance(e, GenerationError) else None,
                details={**inner_details, "photo_id": record.id, "filename": record.filename},
                original_exception=e,
            )
            error.report = report
            raise error from e
