"""Asset store for the on-disk upload tree.

Layout, keyed by one base filename::

    <root>/<filename>            original
    <root>/thumbs/<filename>     thumbnail
    <root>/previews/<filename>   preview

The derivative generator writes into the same tree, so this naming is fixed.
Individual creates and removes rely on file-system atomicity; nothing here
locks across operations.
"""

import os
from enum import Enum
from pathlib import Path

from ..config import get_upload_dir
from ..errors import StorageError, ValidationError
from ..logging_config import get_logger

logger = get_logger(__name__)


class Variant(Enum):
    """On-disk representations of a photo."""

    ORIGINAL = "original"
    THUMBNAIL = "thumbnail"
    PREVIEW = "preview"


DERIVATIVES = (Variant.THUMBNAIL, Variant.PREVIEW)

# Removal order used by the deletion cascade
VARIANT_ORDER = (Variant.ORIGINAL, Variant.THUMBNAIL, Variant.PREVIEW)

VARIANT_SUBDIRS = {
    Variant.ORIGINAL: "",
    Variant.THUMBNAIL: "thumbs",
    Variant.PREVIEW: "previews",
}


class AssetStore:
    """Create and remove photo variants under a single upload root."""

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root or get_upload_dir())
        logger.debug("asset_store_initialized", root=str(self.root))

    def variant_dir(self, variant: Variant) -> Path:
        subdir = VARIANT_SUBDIRS[variant]
        return self.root / subdir if subdir else self.root

    def variant_path(self, filename: str, variant: Variant) -> Path:
        """
        Resolve the path of one variant.

        Raises:
            ValidationError: If the filename would escape its directory
        """
        if not filename or filename in (".", "..") or "/" in filename or "\\" in filename or "\x00" in filename:
            raise ValidationError(
                f"Invalid stored filename: {filename!r}",
                code="invalid_filename",
                details={"filename": filename},
            )
        return self.variant_dir(variant) / filename

    def ensure_layout(self) -> None:
        """Create the originals, thumbs and previews directories."""
        try:
            for variant in VARIANT_ORDER:
                self.variant_dir(variant).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to create upload directories under {self.root}: {e}",
                code="layout_failed",
                details={"root": str(self.root)},
                original_exception=e,
            ) from e

    def write_original(self, filename: str, data: bytes) -> Path:
        """
        Durably write a new original. Never overwrites an existing file.

        Args:
            filename: Stored filename
            data: File contents

        Returns:
            Path of the written file

        Raises:
            StorageError: If the file exists already or cannot be written
        """
        path = self.variant_path(filename, Variant.ORIGINAL)
        # Hidden until complete; list_originals skips dotfiles
        part_path = path.with_name(f".{filename}.part")
        created = False

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(part_path, "xb") as f:
                created = True
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            # Fails with FileExistsError instead of replacing an existing original
            os.link(part_path, path)
        except OSError as e:
            raise StorageError(
                f"Failed to store original '{filename}': {e}",
                code="original_write_failed",
                details={"filename": filename, "path": str(path)},
                original_exception=e,
            ) from e
        finally:
            if created:
                self._discard_partial(part_path)

        logger.info("original_stored", filename=filename, path=str(path), size=len(data))
        return path

    def _discard_partial(self, path: Path) -> None:
        try:
            path.unlink()
        except OSError as e:
            logger.warning("partial_original_not_removed", path=str(path), error=str(e))

    def remove_variant(self, filename: str, variant: Variant) -> None:
        """
        Remove one variant.

        Raises:
            StorageError: If removal fails, including when the file does not exist
        """
        path = self.variant_path(filename, variant)

        try:
            path.unlink()
        except FileNotFoundError as e:
            raise StorageError(
                f"{variant.value.capitalize()} file not found: {path}",
                code="variant_missing",
                details={"filename": filename, "variant": variant.value, "path": str(path)},
                original_exception=e,
            ) from e
        except OSError as e:
            raise StorageError(
                f"Failed to remove {variant.value} '{filename}': {e}",
                code="variant_remove_failed",
                details={"filename": filename, "variant": variant.value, "path": str(path)},
                original_exception=e,
            ) from e

        logger.info("variant_removed", filename=filename, variant=variant.value)

    def has_variant(self, filename: str, variant: Variant) -> bool:
        return self.variant_path(filename, variant).is_file()

    def derivative_status(self, filename: str) -> dict[Variant, bool]:
        """Report which derivatives exist for a stored original."""
        return {variant: self.has_variant(filename, variant) for variant in DERIVATIVES}

    def has_derivatives(self, filename: str) -> bool:
        return all(self.derivative_status(filename).values())

    def list_originals(self) -> list[str]:
        """
        List stored original filenames (files directly under the root).

        Raises:
            StorageError: If the directory cannot be read
        """
        if not self.root.exists():
            return []

        try:
            return sorted(
                entry.name for entry in self.root.iterdir() if entry.is_file() and not entry.name.startswith(".")
            )
        except OSError as e:
            raise StorageError(
                f"Failed to list originals in {self.root}: {e}",
                code="list_failed",
                details={"root": str(self.root)},
                original_exception=e,
            ) from e


# Global asset store instance
_asset_store: AssetStore | None = None


def get_asset_store() -> AssetStore:
    """Get the global asset store rooted at the configured upload directory."""
    global _asset_store
    if _asset_store is None:
        _asset_store = AssetStore()
    return _asset_store
