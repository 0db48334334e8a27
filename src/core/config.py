"""
Import pipeline configuration.

Settings are read from an optional YAML file and then overridden by
environment variables, so deployments can tune a run without editing files.

Expected YAML format:
```yaml
import:
  source_urls:
    - https://dpupd.sco.ca.gov/04_From_500_To_Beyond.zip
    - https://dpupd.sco.ca.gov/03_From_100_To_Below_500.zip
  download_mode: disk
  download_dir: temp
  batch_size: 250
  conflict_policy: update
  fetch:
    timeout: 60
    max_redirects: 5
    max_retries: 3
```
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_SOURCE_URL = "https://dpupd.sco.ca.gov/04_From_500_To_Beyond.zip"


class FetchConfig(BaseModel):
    """HTTP settings for the archive fetcher."""

    timeout: float = Field(60.0, gt=0)
    max_redirects: int = Field(5, ge=0)
    max_retries: int = Field(3, ge=1)
    retry_delay: float = Field(2.0, ge=0)
    chunk_size: int = Field(1024 * 1024, gt=0)


class ImportConfig(BaseModel):
    """
    Settings for one import run.

    Attributes:
        source_urls: ZIP archives to download, processed in order
        download_mode: "memory" buffers archives, "disk" streams them to download_dir
        download_dir: Scratch directory for disk mode
        reuse_downloads: Skip download/extraction when files from a previous run exist
        keep_downloads: Leave scratch files in place after the run
        batch_size: Records per upsert batch
        conflict_policy: "update" overwrites existing rows, "ignore" keeps them
        csv_encoding: Text encoding of the CSV members
        discard_flush_size: Buffered discards written per round-trip
        fetch: HTTP settings
    """

    source_urls: list[str] = Field(default_factory=lambda: [DEFAULT_SOURCE_URL], min_length=1)
    download_mode: Literal["memory", "disk"] = "memory"
    download_dir: Path = Path("temp")
    reuse_downloads: bool = True
    keep_downloads: bool = False
    batch_size: int = Field(250, ge=1, le=1000)
    conflict_policy: Literal["update", "ignore"] = "update"
    csv_encoding: str = "utf-8"
    discard_flush_size: int = Field(100, ge=1)
    fetch: FetchConfig = Field(default_factory=FetchConfig)

    @field_validator("source_urls")
    @classmethod
    def check_urls(cls, v: list[str]) -> list[str]:
        urls = [url.strip() for url in v if url and url.strip()]
        if not urls:
            raise ValueError("At least one source URL is required")
        return urls

    @property
    def source_label(self) -> str:
        """Source location(s) as stored on the ledger row."""
        return "; ".join(self.source_urls)


# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "IMPORT_SOURCE_URLS": (None, "source_urls"),
    "IMPORT_DOWNLOAD_MODE": (None, "download_mode"),
    "IMPORT_DOWNLOAD_DIR": (None, "download_dir"),
    "IMPORT_BATCH_SIZE": (None, "batch_size"),
    "IMPORT_CONFLICT_POLICY": (None, "conflict_policy"),
    "IMPORT_CSV_ENCODING": (None, "csv_encoding"),
    "IMPORT_FETCH_TIMEOUT": ("fetch", "timeout"),
    "IMPORT_MAX_REDIRECTS": ("fetch", "max_redirects"),
    "IMPORT_FETCH_RETRIES": ("fetch", "max_retries"),
}


def _apply_env_overrides(settings: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue

        value: Any = raw
        if key == "source_urls":
            value = [url.strip() for url in raw.split(",")]

        if section is None:
            settings[key] = value
        else:
            settings.setdefault(section, {})[key] = value

    return settings


def load_import_config(
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> ImportConfig:
    """
    Build an ImportConfig from YAML and environment variables.

    Args:
        config_path: Optional YAML file; a missing "import" section is allowed
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated ImportConfig

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        ValueError: If the YAML document is not a mapping
        pydantic.ValidationError: If a setting is out of range
    """
    settings: dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Import configuration file not found: {config_path}")

        with open(path) as f:
            document = yaml.safe_load(f) or {}

        if not isinstance(document, dict):
            raise ValueError("Import configuration must be a YAML mapping")

        settings = dict(document.get("import", document))

    settings = _apply_env_overrides(settings, dict(os.environ) if environ is None else environ)
    return ImportConfig(**settings)
