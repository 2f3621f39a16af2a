"""Archive extraction and payload discovery."""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path

from geolite_import.common.constants import BLOCK_FILE_NAME, DEFAULT_LOCALE, LOCATION_FILE_TEMPLATE
from geolite_import.common.errors import ExtractError
from geolite_import.common.logging import log_event


@dataclass(frozen=True)
class PayloadFiles:
    location_file: Path
    block_file: Path


def locate_payload_dir(base_dir: Path) -> Path:
    """Return the single directory produced by extraction.

    The dataset nests its CSVs in one versioned directory whose name is not
    known in advance. Zero or several candidate directories are rejected.
    """
    candidates = sorted(entry for entry in base_dir.iterdir() if entry.is_dir())
    if not candidates:
        raise ExtractError(f"No payload directory found in {base_dir}")
    if len(candidates) > 1:
        names = ", ".join(entry.name for entry in candidates)
        raise ExtractError(f"Ambiguous payload directories in {base_dir}: {names}")
    return candidates[0]


def payload_paths(payload_dir: Path, locale: str = DEFAULT_LOCALE) -> PayloadFiles:
    return PayloadFiles(
        location_file=payload_dir / LOCATION_FILE_TEMPLATE.format(locale=locale),
        block_file=payload_dir / BLOCK_FILE_NAME,
    )


def extract_archive(archive_path: Path, *, logger: logging.Logger, locale: str = DEFAULT_LOCALE) -> PayloadFiles:
    """Unpack ``archive_path`` beside itself and resolve the two payload CSVs.

    Missing payload files are logged here but not raised; the caller
    re-checks existence before loading.
    """
    if not archive_path.is_file():
        raise ExtractError(f"Invalid archive passed for extraction: {archive_path}")

    base_dir = archive_path.parent
    try:
        with zipfile.ZipFile(archive_path, "r") as archive:
            archive.extractall(base_dir)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ExtractError(f"Could not open archive {archive_path}: {exc}") from exc

    payload_dir = locate_payload_dir(base_dir)
    log_event(logger, f"payload directory {payload_dir}", stage="extract", event="PAYLOAD_DIR")

    files = payload_paths(payload_dir, locale)
    if not files.block_file.is_file():
        logger.warning("block file missing after extraction: %s", files.block_file, extra={"stage": "extract"})
    if not files.location_file.is_file():
        logger.warning("location file missing after extraction: %s", files.location_file, extra={"stage": "extract"})

    try:
        archive_path.unlink()
    except OSError as exc:
        logger.error("failed to delete downloaded archive %s: %s", archive_path, exc, extra={"stage": "extract"})

    return files
