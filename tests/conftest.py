"""
Pytest configuration and fixtures for photoshelf tests.
"""

import io
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog
from PIL import Image

from photoshelf import config
from photoshelf.errors import GenerationError
from photoshelf.models.photo import PhotoRecord
from photoshelf.services.asset_store import AssetStore, Variant
from photoshelf.services.catalog import PhotoCatalog
from photoshelf.services.derivatives import GenerationReport


class FakeGenerator:
    """Stands in for the external generator: copies each original into thumbs/ and previews/."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[str] = []

    def is_available(self) -> bool:
        return True

    def generate(self, directory):
        self.calls.append(str(directory))
        if self.fail:
            raise GenerationError("epg-prep exited with status 1", code="generator_failed")

        store = AssetStore(directory)
        store.ensure_layout()
        report = GenerationReport(directory=str(directory))
        for filename in store.list_originals():
            if store.has_derivatives(filename):
                report.skipped.append(filename)
                continue
            data = store.variant_path(filename, Variant.ORIGINAL).read_bytes()
            for variant in (Variant.THUMBNAIL, Variant.PREVIEW):
                store.variant_path(filename, variant).write_bytes(data)
            report.generated.append(filename)
        return report


class TestDataFactory:
    """Factory class for creating test data objects."""

    @staticmethod
    def create_photo_record(
        filename: str = "holi-1700000000000.jpg",
        original_name: str = "holiday.jpg",
        tags: list[str] | None = None,
        uploaded_by: str | None = "test-user-123",
    ) -> PhotoRecord:
        return PhotoRecord.create_new(
            filename=filename,
            original_name=original_name,
            tags=tags if tags is not None else ["beach", "summer"],
            uploaded_by=uploaded_by,
        )

    @staticmethod
    def create_image_bytes(image_format: str = "JPEG", size: tuple[int, int] = (640, 480), mode: str = "RGB") -> bytes:
        image = Image.new(mode, size, color="red")
        buffer = io.BytesIO()
        image.save(buffer, format=image_format)
        return buffer.getvalue()

    @staticmethod
    def place_photo(store: AssetStore, filename: str, data: bytes = b"data", derivatives: bool = True) -> None:
        store.ensure_layout()
        store.variant_path(filename, Variant.ORIGINAL).write_bytes(data)
        if derivatives:
            store.variant_path(filename, Variant.THUMBNAIL).write_bytes(data)
            store.variant_path(filename, Variant.PREVIEW).write_bytes(data)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp_dir = tempfile.mkdtemp()
    yield Path(tmp_dir)
    shutil.rmtree(tmp_dir, ignore_errors=True)


@pytest.fixture
def store(temp_dir: Path) -> AssetStore:
    asset_store = AssetStore(temp_dir / "uploads")
    asset_store.ensure_layout()
    return asset_store


@pytest.fixture
def catalog(temp_dir: Path) -> Generator[PhotoCatalog, None, None]:
    photo_catalog = PhotoCatalog(str(temp_dir / "db" / "photoshelf.duckdb"))
    yield photo_catalog
    photo_catalog.close()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def failing_generator() -> FakeGenerator:
    return FakeGenerator(fail=True)


@pytest.fixture
def sample_jpeg() -> bytes:
    return TestDataFactory.create_image_bytes("JPEG")


@pytest.fixture
def factory() -> type[TestDataFactory]:
    return TestDataFactory


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> Generator[None, None, None]:
    """Point configuration at the temporary directory and reset cached config."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("UPLOAD_DIR", str(temp_dir / "uploads"))
    monkeypatch.setenv("DATABASE_PATH", str(temp_dir / "db" / "photoshelf.duckdb"))
    monkeypatch.setenv("PHOTOSHELF_ENV_FILE", str(temp_dir / "missing.env"))
    config.reset_config()
    yield
    config.reset_config()


@pytest.fixture(scope="session", autouse=True)
def configure_test_logging() -> None:
    """Route structlog through stdlib logging so task output on stdout stays clean."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
