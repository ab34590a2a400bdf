"""
Unit tests for derivative generators.
"""

import io
import subprocess
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from photoshelf.errors import GenerationError
from photoshelf.services.asset_store import Variant
from photoshelf.services.derivatives import (
    CommandDerivativeGenerator,
    GenerationReport,
    PillowDerivativeGenerator,
    create_derivative_generator,
)


class TestGenerationReport:
    def test_success_and_to_dict(self):
        report = GenerationReport(directory="/uploads", generated=["a-1.jpg"], skipped=["b-2.jpg"])

        assert report.success is True
        data = report.to_dict()
        assert data["generated"] == ["a-1.jpg"]
        assert data["skipped"] == ["b-2.jpg"]
        assert data["success"] is True

        report.failed["c-3.jpg"] = "cannot identify image file"
        assert report.success is False


class TestCommandDerivativeGenerator:
    """Test cases for the external command backend."""

    def test_command_split_and_directory_appended(self):
        generator = CommandDerivativeGenerator("epg-prep --quiet", timeout=5)

        with patch("photoshelf.services.derivatives.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="done\n", stderr="")

            report = generator.generate("/srv/uploads")

        args, kwargs = mock_run.call_args
        assert args[0] == ["epg-prep", "--quiet", "/srv/uploads"]
        assert kwargs["timeout"] == 5.0
        assert kwargs["capture_output"] is True
        assert report.directory == "/srv/uploads"
        assert report.output == "done\n"
        assert report.success is True

    def test_defaults_from_config(self, monkeypatch):
        monkeypatch.setenv("DERIVATIVE_COMMAND", "/opt/bin/epg-prep -v")
        monkeypatch.setenv("DERIVATIVE_TIMEOUT", "12.5")

        generator = CommandDerivativeGenerator()

        assert generator.command == ["/opt/bin/epg-prep", "-v"]
        assert generator.timeout == 12.5

    def test_non_zero_exit(self):
        generator = CommandDerivativeGenerator("epg-prep")

        with patch("photoshelf.services.derivatives.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=2, stdout="", stderr="bad directory\n")

            with pytest.raises(GenerationError) as exc_info:
                generator.generate("/srv/uploads")

        error = exc_info.value
        assert error.code == "generator_failed"
        assert error.details["returncode"] == 2
        assert error.details["stderr"] == "bad directory"
        assert error.user_message == "Failure to create thumbnails!"

    def test_missing_program(self):
        generator = CommandDerivativeGenerator("epg-prep")

        with patch("photoshelf.services.derivatives.subprocess.run", side_effect=FileNotFoundError("epg-prep")):
            with pytest.raises(GenerationError) as exc_info:
                generator.generate("/srv/uploads")

        assert exc_info.value.code == "generator_missing"

    def test_timeout(self):
        generator = CommandDerivativeGenerator("epg-prep", timeout=1)

        with patch(
            "photoshelf.services.derivatives.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd=["epg-prep"], timeout=1),
        ):
            with pytest.raises(GenerationError) as exc_info:
                generator.generate("/srv/uploads")

        assert exc_info.value.code == "generator_timeout"

    def test_is_available(self):
        generator = CommandDerivativeGenerator("epg-prep")

        with patch("photoshelf.services.derivatives.shutil.which", return_value="/usr/bin/epg-prep"):
            assert generator.is_available() is True
        with patch("photoshelf.services.derivatives.shutil.which", return_value=None):
            assert generator.is_available() is False

    def test_empty_command(self):
        with pytest.raises(ValueError):
            CommandDerivativeGenerator("   ")


class TestPillowDerivativeGenerator:
    """Test cases for the in-process Pillow backend."""

    @pytest.fixture
    def generator(self):
        return PillowDerivativeGenerator(thumbnail_size=100, preview_size=400)

    def test_generates_missing_derivatives(self, generator, store, factory):
        factory.place_photo(store, "cat-1.jpg", factory.create_image_bytes("JPEG", (800, 600)), derivatives=False)

        report = generator.generate(store.root)

        assert report.generated == ["cat-1.jpg"]
        assert store.has_derivatives("cat-1.jpg")
        with Image.open(store.variant_path("cat-1.jpg", Variant.THUMBNAIL)) as thumb:
            assert thumb.size == (100, 75)
            assert thumb.format == "JPEG"
        with Image.open(store.variant_path("cat-1.jpg", Variant.PREVIEW)) as preview:
            assert preview.size == (400, 300)

    def test_second_run_is_a_no_op(self, generator, store, factory):
        factory.place_photo(store, "cat-1.jpg", factory.create_image_bytes("JPEG"), derivatives=False)
        generator.generate(store.root)
        thumb_bytes = store.variant_path("cat-1.jpg", Variant.THUMBNAIL).read_bytes()

        report = generator.generate(store.root)

        assert report.generated == []
        assert report.skipped == ["cat-1.jpg"]
        assert store.variant_path("cat-1.jpg", Variant.THUMBNAIL).read_bytes() == thumb_bytes

    def test_fills_only_the_missing_variant(self, generator, store, factory):
        factory.place_photo(store, "cat-1.jpg", factory.create_image_bytes("JPEG"), derivatives=False)
        store.variant_path("cat-1.jpg", Variant.THUMBNAIL).write_bytes(b"existing-thumb")

        generator.generate(store.root)

        assert store.variant_path("cat-1.jpg", Variant.THUMBNAIL).read_bytes() == b"existing-thumb"
        assert store.has_variant("cat-1.jpg", Variant.PREVIEW)

    def test_small_images_are_not_upscaled(self, generator, store, factory):
        factory.place_photo(store, "tiny-1.png", factory.create_image_bytes("PNG", (40, 20)), derivatives=False)

        generator.generate(store.root)

        with Image.open(store.variant_path("tiny-1.png", Variant.PREVIEW)) as preview:
            assert preview.size == (40, 20)
            assert preview.format == "PNG"

    def test_transparent_png_named_jpg_is_converted(self, generator, store, factory):
        factory.place_photo(store, "logo-1.jpg", factory.create_image_bytes("PNG", mode="RGBA"), derivatives=False)

        generator.generate(store.root)

        with Image.open(store.variant_path("logo-1.jpg", Variant.THUMBNAIL)) as thumb:
            assert thumb.mode == "RGB"

    def test_failure_does_not_stop_batch(self, generator, store, factory):
        factory.place_photo(store, "bad-1.jpg", b"not an image", derivatives=False)
        factory.place_photo(store, "good-2.gif", factory.create_image_bytes("GIF"), derivatives=False)

        with pytest.raises(GenerationError) as exc_info:
            generator.generate(store.root)

        report = exc_info.value.report
        assert report.generated == ["good-2.gif"]
        assert list(report.failed) == ["bad-1.jpg"]
        assert store.has_derivatives("good-2.gif")
        assert not store.has_derivatives("bad-1.jpg")

    def test_non_image_files_are_ignored(self, generator, store, factory):
        factory.place_photo(store, "notes-1.txt", b"hello", derivatives=False)

        report = generator.generate(store.root)

        assert report.generated == []
        assert not store.has_variant("notes-1.txt", Variant.THUMBNAIL)

    def test_no_temporary_files_left(self, generator, store, factory):
        factory.place_photo(store, "cat-1.jpg", factory.create_image_bytes("JPEG"), derivatives=False)

        generator.generate(store.root)

        assert sorted(p.name for p in (store.root / "thumbs").iterdir()) == ["cat-1.jpg"]

    @pytest.mark.parametrize(
        "original,expected",
        [
            ((1000, 500), (100, 50)),
            ((500, 1000), (50, 100)),
            ((50, 50), (50, 50)),
            ((1000, 1), (100, 1)),
        ],
    )
    def test_calculate_size(self, generator, original, expected):
        assert generator._calculate_size(original, (100, 100)) == expected

    def test_render_returns_encoded_bytes(self, generator, factory):
        data = generator.render(factory.create_image_bytes("JPEG", (300, 300)), 50, "JPEG")

        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (50, 50)


class TestCreateDerivativeGenerator:
    def test_command_is_default(self):
        assert isinstance(create_derivative_generator(), CommandDerivativeGenerator)

    def test_pillow(self, monkeypatch):
        monkeypatch.setenv("DERIVATIVE_GENERATOR", "Pillow")

        assert isinstance(create_derivative_generator(), PillowDerivativeGenerator)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown derivative generator"):
            create_derivative_generator("imagemagick")
