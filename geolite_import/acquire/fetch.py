"""Archive fetch stage."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

from geolite_import.common.constants import DEFAULT_ARCHIVE_NAME
from geolite_import.common.errors import DownloadError
from geolite_import.common.fs import ensure_dir
from geolite_import.common.http import HttpClient
from geolite_import.common.logging import log_event


def archive_filename(download_url: str) -> str:
    basename = Path(unquote(urlparse(download_url).path)).name
    return basename or DEFAULT_ARCHIVE_NAME


def fetch_archive(
    download_url: str,
    working_dir: Path,
    *,
    http_client: HttpClient,
    logger: logging.Logger,
) -> Path:
    """Download the archive into ``working_dir`` and return its path.

    Partial files are left in place; the caller's cleanup removes the whole
    working directory.
    """
    ensure_dir(working_dir)
    target_path = working_dir / archive_filename(download_url)

    written = http_client.download_to_file(download_url, target_path)

    if not target_path.is_file():
        raise DownloadError(f"Download produced no file at {target_path}")
    log_event(logger, f"archive downloaded to {target_path}", stage="download", event="DOWNLOAD_OK", rows_out=written)
    return target_path
