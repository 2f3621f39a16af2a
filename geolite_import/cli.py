"""CLI entrypoint for the GeoLite2 City CSV import."""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

from geolite_import.common.config_loader import load_import_config
from geolite_import.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, LOCATION_LOCALES
from geolite_import.common.db import Database
from geolite_import.common.errors import PipelineError
from geolite_import.common.ids import generate_run_id
from geolite_import.common.logging import build_logger, log_event, log_failure
from geolite_import.common.models import RunResult
from geolite_import.pipeline.orchestrator import GeoipImport
from geolite_import.pipeline.reports import write_run_summary
from geolite_import.pipeline.tables import drop_table

COMMANDS = ("run", "prepare", "clean", "drop")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--identity", default=None)
    parser.add_argument("--locale", default=None, choices=LOCATION_LOCALES)
    parser.add_argument("--database-url", default=None)
    parser.add_argument("--download-url", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--summary-path", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def _exit_code_for(result: RunResult) -> int:
    if not result.success:
        return EXIT_HARD_FAIL
    if result.has_gaps:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    logger = build_logger(run_id, level=args.log_level)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    config = load_import_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir).with_overrides(
        database_url=args.database_url,
        locale=args.locale,
        download_url=args.download_url,
    )
    identity = args.identity or getpass.getuser()

    with Database(config.database_url) as db:
        importer = GeoipImport(config, db, identity, run_id=run_id, logger=logger)

        if args.command == "clean":
            removed = importer.trash()
            log_event(logger, "working directory removed" if removed else "no working directory", run_id=run_id, event="CLEAN")
            return EXIT_SUCCESS

        if args.command == "prepare":
            statuses = importer.prepare()
            log_event(logger, f"tables prepared: {statuses}", run_id=run_id, stage="schema", event="PREPARED")
            return EXIT_SUCCESS

        if args.command == "drop":
            for table in (importer.tables.location, importer.tables.block):
                drop_table(db, table, logger)
            return EXIT_SUCCESS

        result = importer.run()

    if args.summary_path:
        write_run_summary(result, Path(args.summary_path))
    return _exit_code_for(result)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        log_failure(build_logger(args.run_id or "cli", level=args.log_level), str(exc), error_code=exc.error_code)
        return EXIT_HARD_FAIL
    except Exception:
        log_failure(build_logger(args.run_id or "cli", level=args.log_level), "unexpected failure", exc_info=True, error_code="UNEXPECTED_ERROR")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
