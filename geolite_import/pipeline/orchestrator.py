"""Import orchestration: fetch, extract, prepare tables, load, clean up."""

from __future__ import annotations

import enum
import logging
import time
from pathlib import Path
from typing import Callable

from geolite_import.acquire.extract import extract_archive
from geolite_import.acquire.fetch import fetch_archive
from geolite_import.common.config_loader import ImportConfig
from geolite_import.common.db import Database
from geolite_import.common.errors import DownloadError, ExtractError, PipelineError, RunInProgressError
from geolite_import.common.fs import remove_tree
from geolite_import.common.http import HttpClient, RetryConfig, TimeoutConfig
from geolite_import.common.ids import generate_run_id, validate_identity
from geolite_import.common.limits import execution_time_limit, identity_lock
from geolite_import.common.logging import build_logger, error_log_destination, log_event, log_failure
from geolite_import.common.models import LoadStats, RunResult, WorkingSet
from geolite_import.common.time_utils import elapsed_ms
from geolite_import.pipeline.load import block_spec, load_csv, location_spec
from geolite_import.pipeline.tables import build_tables, prepare_tables


class RunState(str, enum.Enum):
    IDLE = "idle"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    SCHEMA_PREPARING = "schema_preparing"
    LOADING_LOCATION = "loading_location"
    LOADING_BLOCK = "loading_block"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


def working_dir_for(base_dir: Path, identity: str) -> Path:
    return base_dir / validate_identity(identity)


def lock_path_for(base_dir: Path, identity: str) -> Path:
    return base_dir / f"{validate_identity(identity)}.lock"


class GeoipImport:
    """One full-replace import of the GeoLite2 City CSV dataset for one identity."""

    def __init__(
        self,
        config: ImportConfig,
        db: Database,
        identity: str | Callable[[], str],
        *,
        run_id: str | None = None,
        logger: logging.Logger | None = None,
        http_client: HttpClient | None = None,
    ) -> None:
        self.config = config
        self.db = db
        self.identity = validate_identity(identity() if callable(identity) else identity)
        self.run_id = run_id or generate_run_id()
        self.logger = logger or build_logger(self.run_id)
        self.http_client = http_client
        self._owns_http_client = http_client is None
        self.working_set = WorkingSet(working_dir=working_dir_for(config.base_dir, self.identity))
        self.state = RunState.IDLE
        self.tables = build_tables(config.location_table, config.block_table)

    def _advance(self, state: RunState) -> None:
        self.state = state
        log_event(self.logger, f"entering {state.value}", run_id=self.run_id, stage=state.value, event="STATE")

    def trash(self) -> bool:
        """Remove this identity's working directory; False if there was none."""
        working_dir = self.working_set.working_dir
        removed = remove_tree(working_dir)
        if working_dir.exists():
            log_failure(self.logger, f"failed to remove working directory {working_dir}", run_id=self.run_id, stage="cleanup")
        return removed

    def _http_client(self) -> HttpClient:
        if self.http_client is None:
            self.http_client = HttpClient(
                timeout=TimeoutConfig(connect=self.config.connect_timeout, read=self.config.read_timeout),
                retry=RetryConfig(max_attempts=self.config.max_attempts),
            )
        return self.http_client

    def _download(self) -> None:
        self._advance(RunState.DOWNLOADING)
        archive_path = fetch_archive(
            self.config.download_url,
            self.working_set.working_dir,
            http_client=self._http_client(),
            logger=self.logger,
        )
        if archive_path is None or not Path(archive_path).is_file():
            raise DownloadError(f"Failed to download archive from {self.config.download_url}")
        self.working_set.archive_path = Path(archive_path)

    def _extract(self) -> None:
        self._advance(RunState.EXTRACTING)
        files = extract_archive(self.working_set.archive_path, logger=self.logger, locale=self.config.locale)
        if not files.location_file.is_file():
            raise ExtractError(f"Location file not found: {files.location_file}")
        if not files.block_file.is_file():
            raise ExtractError(f"Block file not found: {files.block_file}")
        self.working_set.location_file = files.location_file
        self.working_set.block_file = files.block_file

    def _prepare_schema(self) -> None:
        self._advance(RunState.SCHEMA_PREPARING)
        prepare_tables(self.db, self.tables, self.logger)

    def _load(self, result: RunResult) -> None:
        self._advance(RunState.LOADING_LOCATION)
        result.loads["location"] = LoadStats(table=self.tables.location.name)
        load_csv(
            self.db,
            self.working_set.location_file,
            location_spec(self.tables.location, self.config.location_batch_size),
            self.logger,
            stats=result.loads["location"],
        )

        self._advance(RunState.LOADING_BLOCK)
        result.loads["block"] = LoadStats(table=self.tables.block.name)
        load_csv(
            self.db,
            self.working_set.block_file,
            block_spec(self.tables.block, self.config.block_batch_size),
            self.logger,
            stats=result.loads["block"],
        )

    def _fail(self, result: RunResult, error_code: str, log_message: str, message: str, *, exc_info: bool = False) -> None:
        if result.failed_state is None:
            result.failed_state = self.state.value
        result.error_code = error_code
        result.message = message
        log_failure(
            self.logger,
            log_message,
            exc_info=exc_info,
            run_id=self.run_id,
            stage=self.state.value,
            event="RUN_FAIL",
            status="error",
            error_code=error_code,
        )
        self.state = RunState.FAILED

    def _execute(self, result: RunResult) -> None:
        self.trash()
        try:
            self._download()
            self._extract()
            self._prepare_schema()
            self._load(result)
            self._advance(RunState.CLEANING_UP)
        except PipelineError as exc:
            self._fail(result, exc.error_code, f"import failed while {self.state.value}: {exc}", str(exc))
        except Exception as exc:
            self._fail(
                result,
                "UNEXPECTED_ERROR",
                f"unexpected failure while {self.state.value}",
                str(exc),
                exc_info=True,
            )
        finally:
            self.trash()
            if self._owns_http_client and self.http_client is not None:
                self.http_client.close()
                self.http_client = None
        if self.state is not RunState.FAILED:
            self.state = RunState.DONE

    def run(self) -> RunResult:
        result = RunResult(run_id=self.run_id, success=False, state=self.state.value)
        started_at = time.monotonic()
        with error_log_destination(self.logger, self.config.log_path):
            log_event(
                self.logger,
                "starting GeoIP CSV import",
                run_id=self.run_id,
                event="RUN_START",
                status="ok",
            )
            try:
                with identity_lock(lock_path_for(self.config.base_dir, self.identity)):
                    with execution_time_limit(self.config.time_limit_seconds, self.logger):
                        self._execute(result)
            except RunInProgressError as exc:
                self._fail(result, exc.error_code, str(exc), str(exc))
            except PipelineError as exc:
                # a timeout can land after the load finished, during cleanup
                self.trash()
                self._fail(result, exc.error_code, str(exc), str(exc))

            result.state = self.state.value
            result.success = self.state is RunState.DONE
            result.duration_ms = elapsed_ms(started_at)
            log_event(
                self.logger,
                "import finished" if result.success else "import failed",
                run_id=self.run_id,
                event="RUN_END",
                status=("partial" if result.has_gaps else "ok") if result.success else "error",
                duration_ms=result.duration_ms,
                error_code=result.error_code,
            )
        return result

    def prepare(self) -> dict[str, str]:
        """Prepare both destination tables without loading anything."""
        statuses = prepare_tables(self.db, self.tables, self.logger)
        return {name: status.value for name, status in statuses.items()}


def run_import(
    config: ImportConfig,
    db: Database,
    identity: str | Callable[[], str],
    *,
    run_id: str | None = None,
    logger: logging.Logger | None = None,
    http_client: HttpClient | None = None,
) -> RunResult:
    return GeoipImport(config, db, identity, run_id=run_id, logger=logger, http_client=http_client).run()
