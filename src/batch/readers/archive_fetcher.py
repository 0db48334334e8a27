"""
HTTP download of the State Controller's ZIP archives.
"""

import time
from pathlib import Path
from urllib.parse import urljoin

import requests

from src.core.config import FetchConfig
from src.core.errors import DownloadError, TransportError
from src.observability.logger import get_logger
from src.observability.metrics import download_bytes_total, increment_counter, retries_total

logger = get_logger(__name__)

REDIRECT_STATUSES = (301, 302)


class ArchiveFetcher:
    """
    Retrieves a remote archive, following redirects.

    In memory mode the body is returned as bytes; in disk mode it is streamed
    to a local file in chunks so memory use stays bounded.
    """

    def __init__(self, config: FetchConfig | None = None, session: requests.Session | None = None):
        """
        Initialize archive fetcher.

        Args:
            config: Timeout, redirect and retry settings
            session: HTTP session (a new one is created if omitted)
        """
        self.config = config or FetchConfig()
        self.session = session or requests.Session()

    def fetch(self, url: str, destination: str | Path | None = None) -> bytes | Path:
        """
        Download url into memory, or into destination when one is given.

        Transport failures are retried up to config.max_retries times;
        HTTP status failures are not.

        Args:
            url: Archive URL
            destination: Target file for disk mode

        Returns:
            Response body (memory mode) or destination path (disk mode)

        Raises:
            DownloadError: Non-200 final status, missing Location, or too many redirects
            TransportError: Network failure after all retries
        """
        attempts = self.config.max_retries

        for attempt in range(1, attempts + 1):
            try:
                result = self._fetch_once(url, destination)
            except TransportError as e:
                increment_counter(retries_total, operation="fetch", status="failure")
                if attempt == attempts:
                    logger.error(f"Giving up on {url} after {attempts} attempts: {e.message}")
                    raise
                logger.warning(
                    f"Download attempt {attempt}/{attempts} failed: {e.message}; "
                    f"retrying in {self.config.retry_delay}s"
                )
                time.sleep(self.config.retry_delay)
                continue

            if attempt > 1:
                increment_counter(retries_total, operation="fetch", status="success")
            return result

        raise TransportError(url, f"No download attempts made (max_retries={attempts})")

    def _fetch_once(self, url: str, destination: str | Path | None) -> bytes | Path:
        current_url = url

        for _ in range(self.config.max_redirects + 1):
            logger.info(f"Downloading {current_url}")
            try:
                response = self.session.get(
                    current_url,
                    allow_redirects=False,
                    stream=True,
                    timeout=self.config.timeout,
                )
            except requests.RequestException as e:
                raise TransportError(current_url, str(e)) from e

            with response:
                if response.status_code in REDIRECT_STATUSES:
                    location = response.headers.get("Location")
                    if not location:
                        raise DownloadError(
                            current_url, "Redirect URL not found", response.status_code
                        )
                    current_url = urljoin(current_url, location)
                    logger.info(f"Redirecting to {current_url}")
                    continue

                if response.status_code != 200:
                    raise DownloadError(
                        current_url,
                        f"Download failed with status code: {response.status_code}",
                        response.status_code,
                    )

                if destination is None:
                    return self._read_body(current_url, response)
                return self._write_body(current_url, response, Path(destination))

        raise DownloadError(
            url, f"Too many redirects (limit {self.config.max_redirects})"
        )

    def _read_body(self, url: str, response: requests.Response) -> bytes:
        try:
            body = response.content
        except requests.RequestException as e:
            raise TransportError(url, str(e)) from e

        increment_counter(download_bytes_total, len(body), mode="memory")
        logger.info(f"Downloaded {len(body) / 1024 / 1024:.2f} MB")
        return body

    def _write_body(self, url: str, response: requests.Response, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.config.chunk_size):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except requests.RequestException as e:
            destination.unlink(missing_ok=True)
            raise TransportError(url, str(e)) from e
        except OSError:
            destination.unlink(missing_ok=True)
            raise

        increment_counter(download_bytes_total, written, mode="disk")
        logger.info(f"Downloaded {written / 1024 / 1024:.2f} MB to {destination}")
        return destination

    def fetch_all(
        self,
        urls: list[str],
        download_dir: str | Path | None = None,
        reuse_existing: bool = True,
    ) -> list[bytes | Path]:
        """
        Download several archives in order.

        In disk mode (download_dir given) archive i is saved as
        california_data_<i+1>.zip; an archive already on disk is reused when
        reuse_existing is set, so an interrupted run can resume.

        Args:
            urls: Archive URLs
            download_dir: Scratch directory for disk mode, or None for memory mode
            reuse_existing: Skip downloads whose target file already exists

        Returns:
            One bytes object or path per URL
        """
        archives: list[bytes | Path] = []

        for index, url in enumerate(urls):
            if download_dir is None:
                archives.append(self.fetch(url))
                continue

            target = Path(download_dir) / f"california_data_{index + 1}.zip"
            if reuse_existing and target.exists() and target.stat().st_size > 0:
                logger.info(f"Found existing ZIP file {target.name}, skipping download")
                archives.append(target)
                continue

            archives.append(self.fetch(url, target))

        return archives
