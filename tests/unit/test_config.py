"""
Unit tests for configuration management.
"""

import pytest

from photoshelf import config
from photoshelf.config import Config


class TestConfig:
    def test_get_with_cast(self, monkeypatch):
        monkeypatch.setenv("TEST_INT", "42")
        monkeypatch.setenv("TEST_BOOL", "yes")
        monkeypatch.setenv("TEST_FLOAT", "2.5")
        settings = Config()

        assert settings.get("TEST_INT", cast_type=int) == 42
        assert settings.get("TEST_BOOL", cast_type=bool) is True
        assert settings.get("TEST_FLOAT", cast_type=float) == 2.5

    def test_invalid_cast_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("TEST_INT", "many")

        assert Config().get("TEST_INT", 7, int) == 7

    def test_values_are_cached(self, monkeypatch):
        monkeypatch.setenv("TEST_VALUE", "first")
        settings = Config()
        assert settings.get("TEST_VALUE") == "first"

        monkeypatch.setenv("TEST_VALUE", "second")
        assert settings.get("TEST_VALUE") == "first"

        settings.clear_cache()
        assert settings.get("TEST_VALUE") == "second"

    def test_get_required(self, monkeypatch):
        monkeypatch.delenv("TEST_MISSING", raising=False)

        with pytest.raises(ValueError, match="TEST_MISSING"):
            Config().get_required("TEST_MISSING")

    def test_env_file_does_not_override_environment(self, monkeypatch, temp_dir):
        env_file = temp_dir / ".env"
        env_file.write_text("PHOTOSHELF_TEST_A=from-file\nPHOTOSHELF_TEST_B=from-file\n")
        monkeypatch.setenv("PHOTOSHELF_TEST_A", "from-env")
        monkeypatch.delenv("PHOTOSHELF_TEST_B", raising=False)

        settings = Config(env_file=str(env_file))

        assert settings.get("PHOTOSHELF_TEST_A") == "from-env"
        assert settings.get("PHOTOSHELF_TEST_B") == "from-file"
        monkeypatch.delenv("PHOTOSHELF_TEST_B", raising=False)

    @pytest.mark.parametrize(
        "environment,development,production",
        [("development", True, False), ("local", True, False), ("production", False, True), ("test", False, False)],
    )
    def test_environment_checks(self, monkeypatch, environment, development, production):
        monkeypatch.setenv("ENVIRONMENT", environment)
        settings = Config()

        assert settings.is_development() is development
        assert settings.is_production() is production


class TestSettings:
    def test_defaults(self, monkeypatch):
        for key in (
            "DERIVATIVE_GENERATOR",
            "DERIVATIVE_COMMAND",
            "DERIVATIVE_TIMEOUT",
            "THUMBNAIL_MAX_SIZE",
            "PREVIEW_MAX_SIZE",
            "MAX_UPLOAD_SIZE",
            "ROLLBACK_ON_CATALOG_FAILURE",
        ):
            monkeypatch.delenv(key, raising=False)
        config.reset_config()

        assert config.get_derivative_generator_kind() == "command"
        assert config.get_derivative_command() == "epg-prep"
        assert config.get_derivative_timeout() == 300.0
        assert config.get_thumbnail_max_size() == 300
        assert config.get_preview_max_size() == 1200
        assert config.get_max_upload_size() == 50 * 1024 * 1024
        assert config.get_rollback_on_catalog_failure() is True

    def test_paths_from_environment(self, temp_dir):
        assert config.get_upload_dir() == str(temp_dir / "uploads")
        assert config.get_database_path() == str(temp_dir / "db" / "photoshelf.duckdb")
        assert config.get_environment() == "test"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("DERIVATIVE_GENERATOR", "PILLOW")
        monkeypatch.setenv("MAX_UPLOAD_SIZE", "1024")
        monkeypatch.setenv("ROLLBACK_ON_CATALOG_FAILURE", "false")
        config.reset_config()

        assert config.get_derivative_generator_kind() == "pillow"
        assert config.get_max_upload_size() == 1024
        assert config.get_rollback_on_catalog_failure() is False

    def test_reset_config(self):
        first = config.get_config()

        config.reset_config()

        assert config.get_config() is not first
