"""
Unit tests for import configuration loading.
"""

import pytest
from pydantic import ValidationError

from src.core.config import DEFAULT_SOURCE_URL, ImportConfig, load_import_config


@pytest.mark.unit
class TestImportConfig:
    """Tests for ImportConfig defaults and validation"""

    def test_defaults(self):
        config = ImportConfig()

        assert config.source_urls == [DEFAULT_SOURCE_URL]
        assert config.download_mode == "memory"
        assert config.batch_size == 250
        assert config.conflict_policy == "update"
        assert config.fetch.max_redirects == 5
        assert config.fetch.max_retries == 3

    @pytest.mark.parametrize("batch_size", [0, 1001])
    def test_batch_size_bounds(self, batch_size):
        with pytest.raises(ValidationError):
            ImportConfig(batch_size=batch_size)

    def test_blank_urls_are_rejected(self):
        with pytest.raises(ValidationError):
            ImportConfig(source_urls=["  ", ""])

    def test_urls_are_trimmed(self):
        config = ImportConfig(source_urls=[" https://a.test/1.zip ", "https://a.test/2.zip"])

        assert config.source_urls == ["https://a.test/1.zip", "https://a.test/2.zip"]
        assert config.source_label == "https://a.test/1.zip; https://a.test/2.zip"

    def test_unknown_conflict_policy_is_rejected(self):
        with pytest.raises(ValidationError):
            ImportConfig(conflict_policy="merge")


@pytest.mark.unit
class TestLoadImportConfig:
    """Tests for YAML and environment loading"""

    def test_no_file_no_env_gives_defaults(self):
        assert load_import_config(environ={}) == ImportConfig()

    def test_reads_yaml_import_section(self, tmp_path):
        path = tmp_path / "import.yaml"
        path.write_text(
            "import:\n"
            "  source_urls:\n"
            "    - https://a.test/1.zip\n"
            "  download_mode: disk\n"
            "  batch_size: 100\n"
            "  fetch:\n"
            "    timeout: 5\n"
        )

        config = load_import_config(path, environ={})

        assert config.source_urls == ["https://a.test/1.zip"]
        assert config.download_mode == "disk"
        assert config.batch_size == 100
        assert config.fetch.timeout == 5

    def test_environment_overrides_yaml(self, tmp_path):
        path = tmp_path / "import.yaml"
        path.write_text("import:\n  batch_size: 100\n")

        config = load_import_config(
            path,
            environ={
                "IMPORT_BATCH_SIZE": "500",
                "IMPORT_SOURCE_URLS": "https://a.test/1.zip, https://a.test/2.zip",
                "IMPORT_FETCH_RETRIES": "5",
            },
        )

        assert config.batch_size == 500
        assert config.source_urls == ["https://a.test/1.zip", "https://a.test/2.zip"]
        assert config.fetch.max_retries == 5

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_import_config(tmp_path / "missing.yaml", environ={})

    def test_non_mapping_document_raises(self, tmp_path):
        path = tmp_path / "import.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="YAML mapping"):
            load_import_config(path, environ={})
