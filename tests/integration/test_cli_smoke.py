from __future__ import annotations

import json
import zipfile
from pathlib import Path

import pytest

from geolite_import.cli import parse_args, run_command
from geolite_import.common.constants import EXIT_HARD_FAIL, EXIT_SUCCESS
from geolite_import.common.db import Database
from geolite_import.pipeline import orchestrator
from geolite_import.pipeline.tables import table_exists

FIXTURES = Path("tests/fixtures/geolite")


@pytest.fixture
def overlay_dir(tmp_path: Path) -> Path:
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "geoip.yml").write_text(
        f"""workspace:
  base_dir: "{tmp_path / 'scratch'}"
database:
  url: "sqlite:///{tmp_path / 'cli.db'}"
run:
  time_limit_seconds: 0
  log_path: "{tmp_path / 'geoip.log'}"
""",
        encoding="utf-8",
    )
    return overlay


def _fetch_fixture_archive(download_url, working_dir, *, http_client, logger):
    working_dir.mkdir(parents=True, exist_ok=True)
    target = working_dir / "GeoLite2-City-CSV.zip"
    with zipfile.ZipFile(target, "w") as zf:
        for path in FIXTURES.glob("*.csv"):
            zf.write(path, f"GeoLite2-City-CSV_20260101/{path.name}")
    return target


def _args(overlay_dir: Path, command: str, *extra: str):
    return parse_args(
        [
            command,
            "--config-dir",
            "config",
            "--overlay-config-dir",
            str(overlay_dir),
            "--identity",
            "cli-user",
            "--run-id",
            "run-cli",
            *extra,
        ]
    )


@pytest.mark.integration
def test_cli_run_loads_tables_and_writes_summary(tmp_path: Path, overlay_dir: Path, monkeypatch):
    monkeypatch.setattr(orchestrator, "fetch_archive", _fetch_fixture_archive)
    summary_path = tmp_path / "out" / "run_summary.json"

    exit_code = run_command(_args(overlay_dir, "run", "--summary-path", str(summary_path)))

    assert exit_code == EXIT_SUCCESS
    summary = json.loads(summary_path.read_text(encoding="utf-8"))
    assert summary["status"] == "success"
    assert summary["totals"]["rows_loaded"] == 5
    with Database(f"sqlite:///{tmp_path / 'cli.db'}") as db:
        assert db.count_rows("geoip_location") == 3
        assert db.count_rows("geoip_block") == 2
    assert not (tmp_path / "scratch" / "cli-user").exists()


@pytest.mark.integration
def test_cli_run_failure_maps_to_hard_fail(overlay_dir: Path, monkeypatch):
    def no_archive(download_url, working_dir, *, http_client, logger):
        return working_dir / "missing.zip"

    monkeypatch.setattr(orchestrator, "fetch_archive", no_archive)

    assert run_command(_args(overlay_dir, "run")) == EXIT_HARD_FAIL


@pytest.mark.integration
def test_cli_prepare_clean_and_drop(tmp_path: Path, overlay_dir: Path):
    assert run_command(_args(overlay_dir, "prepare")) == EXIT_SUCCESS
    with Database(f"sqlite:///{tmp_path / 'cli.db'}") as db:
        assert db.count_rows("geoip_block") == 0

    leftover = tmp_path / "scratch" / "cli-user"
    leftover.mkdir(parents=True)
    assert run_command(_args(overlay_dir, "clean")) == EXIT_SUCCESS
    assert not leftover.exists()

    assert run_command(_args(overlay_dir, "drop")) == EXIT_SUCCESS
    with Database(f"sqlite:///{tmp_path / 'cli.db'}") as db:
        assert table_exists(db, "geoip_block") is False
        assert table_exists(db, "geoip_location") is False
