"""Derivative generation for photoshelf.

A generator runs over a whole upload directory and materializes the
thumbnail and preview variants of every original that lacks them. Running it
again over a directory that is already complete must not fail and must not
change which photos have derivatives.

Two backends are provided:

- ``CommandDerivativeGenerator`` runs an external program (``epg-prep`` by
  default) with the upload directory as its last argument. Its output is
  logged but never parsed; only the exit status matters.
- ``PillowDerivativeGenerator`` does the same work in-process with Pillow.
"""

import io
import os
import shlex
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from PIL import Image, ImageOps

from ..config import (
    get_derivative_command,
    get_derivative_generator_kind,
    get_derivative_timeout,
    get_preview_max_size,
    get_thumbnail_max_size,
)
from ..errors import GenerationError
from ..logging_config import get_logger, log_error, log_performance
from .asset_store import AssetStore, Variant

logger = get_logger(__name__)

# Output format per original extension; derivatives keep the original's name
PIL_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".gif": "GIF",
}


@dataclass
class GenerationReport:
    """Outcome of one generation run."""

    directory: str
    generated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    output: str = ""
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "directory": self.directory,
            "generated": list(self.generated),
            "skipped": list(self.skipped),
            "failed": dict(self.failed),
            "duration_seconds": self.duration_seconds,
            "success": self.success,
        }


class DerivativeGenerator(Protocol):
    """Anything that can fill in missing derivatives for an upload directory."""

    def generate(self, directory: str | Path) -> GenerationReport: ...


class CommandDerivativeGenerator:
    """Run an external derivative generation program over a directory."""

    def __init__(self, command: str | None = None, timeout: float | None = None) -> None:
        """
        Args:
            command: Program and leading arguments; the directory is appended
            timeout: Seconds before the run is abandoned
        """
        self.command = shlex.split(command or get_derivative_command())
        self.timeout = float(timeout) if timeout is not None else get_derivative_timeout()
        if not self.command:
            raise ValueError("Derivative command must not be empty")

    def is_available(self) -> bool:
        """Check if the program is on PATH."""
        return shutil.which(self.command[0]) is not None

    def generate(self, directory: str | Path) -> GenerationReport:
        """
        Run the program once over ``directory``.

        Raises:
            GenerationError: On missing program, timeout or non-zero exit
        """
        cmd = [*self.command, str(directory)]
        details = {"command": cmd, "directory": str(directory)}
        start_time = time.monotonic()

        logger.info("derivative_generation_started", command=cmd)

        try:
            process = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise GenerationError(
                f"Derivative command not found: {self.command[0]}",
                code="generator_missing",
                details=details,
                original_exception=e,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise GenerationError(
                f"Derivative generation timed out after {self.timeout}s",
                code="generator_timeout",
                details=details,
                original_exception=e,
            ) from e
        except OSError as e:
            raise GenerationError(
                f"Derivative command could not be started: {e}",
                code="generator_failed",
                details=details,
                original_exception=e,
            ) from e

        duration = time.monotonic() - start_time
        logger.info("derivative_generation_output", stdout=process.stdout.strip(), stderr=process.stderr.strip())

        if process.returncode != 0:
            raise GenerationError(
                f"Derivative command exited with status {process.returncode}",
                code="generator_failed",
                details={**details, "returncode": process.returncode, "stderr": process.stderr.strip()},
            )

        log_performance("generate_derivatives", duration, backend="command", directory=str(directory))
        return GenerationReport(directory=str(directory), output=process.stdout, duration_seconds=duration)


class PillowDerivativeGenerator:
    """Generate missing thumbnails and previews with Pillow."""

    def __init__(self, thumbnail_size: int | None = None, preview_size: int | None = None, quality: int = 85) -> None:
        self.sizes = {
            Variant.THUMBNAIL: thumbnail_size or get_thumbnail_max_size(),
            Variant.PREVIEW: preview_size or get_preview_max_size(),
        }
        self.quality = quality

    def is_available(self) -> bool:
        return True

    def generate(self, directory: str | Path) -> GenerationReport:
        """
        Fill in missing derivatives for every original in ``directory``.

        Originals whose derivatives all exist are skipped. Per-file failures
        do not stop the batch.

        Raises:
            GenerationError: After the batch, if any original failed
        """
        store = AssetStore(directory)
        report = GenerationReport(directory=str(directory))
        start_time = time.monotonic()

        try:
            store.ensure_layout()
            originals = [name for name in store.list_originals() if Path(name).suffix.lower() in PIL_FORMATS]
        except Exception as e:
            raise GenerationError(
                f"Cannot scan upload directory {directory}: {e}",
                code="generator_failed",
                details={"directory": str(directory)},
                original_exception=e,
            ) from e

        for filename in originals:
            missing = [variant for variant, present in store.derivative_status(filename).items() if not present]
            if not missing:
                report.skipped.append(filename)
                continue

            try:
                image_data = store.variant_path(filename, Variant.ORIGINAL).read_bytes()
                for variant in missing:
                    self._write_derivative(store, filename, image_data, variant)
                report.generated.append(filename)
            except Exception as e:
                log_error(e, {"operation": "generate_derivative", "filename": filename})
                report.failed[filename] = str(e)

        report.duration_seconds = time.monotonic() - start_time
        log_performance(
            "generate_derivatives",
            report.duration_seconds,
            backend="pillow",
            directory=str(directory),
            generated=len(report.generated),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )

        if report.failed:
            error = GenerationError(
                f"Derivative generation failed for {len(report.failed)} file(s)",
                code="generator_failed",
                details={"directory": str(directory), "failed": report.failed},
            )
            error.report = report
            raise error

        return report

    def _write_derivative(self, store: AssetStore, filename: str, image_data: bytes, variant: Variant) -> None:
        target = store.variant_path(filename, variant)
        image_format = PIL_FORMATS[Path(filename).suffix.lower()]
        data = self.render(image_data, self.sizes[variant], image_format)

        # Write beside the target and rename so readers never see a partial file
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("derivative_written", filename=filename, variant=variant.value, size=len(data))

    def render(self, image_data: bytes, max_edge: int, image_format: str) -> bytes:
        """
        Resize an image to fit a square bounding box, never upscaling.

        Args:
            image_data: Original image bytes
            max_edge: Bounding box edge in pixels
            image_format: Pillow format name for the output

        Returns:
            Encoded derivative bytes
        """
        with Image.open(io.BytesIO(image_data)) as image:
            image = ImageOps.exif_transpose(image)
            target_size = self._calculate_size(image.size, (max_edge, max_edge))

            if image_format == "JPEG" and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")

            resized = image.resize(target_size, Image.Resampling.LANCZOS) if target_size != image.size else image

            buffer = io.BytesIO()
            if image_format == "JPEG":
                resized.save(buffer, format=image_format, quality=self.quality, optimize=True)
            else:
                resized.save(buffer, format=image_format)
            return buffer.getvalue()

    def _calculate_size(self, original_size: tuple[int, int], max_size: tuple[int, int]) -> tuple[int, int]:
        """Scale to fit inside ``max_size`` keeping aspect ratio; never enlarge."""
        original_width, original_height = original_size
        max_width, max_height = max_size

        scale_ratio = min(max_width / original_width, max_height / original_height, 1.0)

        return (max(1, int(original_width * scale_ratio)), max(1, int(original_height * scale_ratio)))


def create_derivative_generator(kind: str | None = None) -> DerivativeGenerator:
    """
    Build the generator selected by configuration.

    Raises:
        ValueError: For an unknown generator kind
    """
    kind = (kind or get_derivative_generator_kind()).lower()
    if kind == "command":
        return CommandDerivativeGenerator()
    if kind == "pillow":
        return PillowDerivativeGenerator()
    raise ValueError(f"Unknown derivative generator: {kind}")


# Global generator instance
_derivative_generator: DerivativeGenerator | None = None


def get_derivative_generator() -> DerivativeGenerator:
    """Get the global derivative generator."""
    global _derivative_generator
    if _derivative_generator is None:
        _derivative_generator = create_derivative_generator()
    return _derivative_generator
