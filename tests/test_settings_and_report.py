import csv
import json
from pathlib import Path

from loguru import logger
import pytest

from core.errors import ValidationError
from core.services.analysis_service import analyze
from core.services.interfaces import (
    AlbumTransferResult,
    ConsolidationResult,
    ExecutionReport,
    GroupResult,
    OperationFailed,
    OperationSkipped,
    OperationSuccess,
)
from fakes import make_asset, make_group
from infrastructure.logging import find_latest_log_file, init_logging
from infrastructure.report_writer import (
    AUDIT_HEADERS,
    audit_rows,
    write_audit_csv,
    write_json_report,
)
from infrastructure.settings import JsonSettings, load_execution_config, load_server_config
from main import _load_settings


def _settings(tmp_path: Path, data: dict) -> JsonSettings:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return JsonSettings(path)


def test_dotted_keys(tmp_path):
    settings = _settings(tmp_path, {"report": {"dir": "out"}, "flat": 1})
    assert settings.get("report.dir") == "out"
    assert settings.get("flat") == 1
    assert settings.get("report.missing", "x") == "x"
    assert settings.get("flat.deeper") is None


def test_missing_settings_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        JsonSettings(tmp_path / "nope.json")
    assert JsonSettings().get("execution.requests_per_sec", 7) == 7


def test_execution_defaults():
    config = load_execution_config(JsonSettings())
    assert config.requests_per_sec == 10
    assert config.max_concurrent == 5
    assert config.backup_dir == Path("backups")
    assert config.force_delete is False
    assert config.preserve_albums is True


def test_execution_values_from_file_and_overrides(tmp_path):
    settings = _settings(
        tmp_path,
        {
            "execution": {
                "requests_per_sec": 3,
                "max_concurrent": 2,
                "backup_dir": str(tmp_path / "b"),
                "force_delete": "yes",
                "preserve_albums": False,
            }
        },
    )
    config = load_execution_config(settings, max_concurrent=None, requests_per_sec=20)
    assert config.requests_per_sec == 20
    assert config.max_concurrent == 2
    assert config.backup_dir == tmp_path / "b"
    assert config.force_delete is True
    assert config.preserve_albums is False


@pytest.mark.parametrize(
    "execution", [{"requests_per_sec": 0}, {"max_concurrent": -1}, {"requests_per_sec": "fast"}]
)
def test_invalid_execution_values(tmp_path, execution):
    with pytest.raises(ValidationError):
        load_execution_config(_settings(tmp_path, {"execution": execution}))


def test_unknown_override_rejected():
    with pytest.raises(ValidationError):
        load_execution_config(JsonSettings(), turbo=True)


def test_environment_wins_over_file(tmp_path, monkeypatch):
    settings = _settings(tmp_path, {"server": {"url": "http://file", "api_key": "file-key"}})
    monkeypatch.delenv("IMMICH_URL", raising=False)
    monkeypatch.setenv("IMMICH_API_KEY", "env-key")
    server = load_server_config(settings)
    assert server.url == "http://file"
    assert server.api_key == "env-key"


def _report() -> ExecutionReport:
    report = ExecutionReport()
    done = GroupResult(
        duplicate_id="d1",
        winner_id="w1",
        consolidation_result=ConsolidationResult(
            gps_transferred=True,
            datetime_transferred=False,
            description_transferred=False,
            source_asset_id="l1",
        ),
        album_transfer_result=AlbumTransferResult(albums_transferred=1, album_names=["Trip"]),
        download_results=[OperationSuccess("l1", "/b/l1_a.jpg"), OperationFailed("l2", "boom")],
        delete_result=OperationSuccess("d1"),
    )
    skipped = GroupResult(
        duplicate_id="d2",
        winner_id="w2",
        delete_result=OperationSkipped("d2", "no assets were successfully downloaded"),
    )
    report.add_group_result(done)
    report.add_group_result(skipped)
    return report


def test_report_counters():
    report = _report()
    assert report.downloaded == 1
    assert report.deleted == 1
    assert report.failed == 1
    assert report.skipped == 1


def test_audit_rows_cover_every_stage():
    rows = audit_rows(_report())
    assert rows[0] == ["d1", "consolidate", "w1", "success", "gps from l1"]
    assert rows[1] == ["d1", "albums", "w1", "success", "Trip"]
    assert rows[2] == ["d1", "download", "l1", "success", "/b/l1_a.jpg"]
    assert rows[3] == ["d1", "download", "l2", "failed", "boom"]
    assert rows[4] == ["d1", "delete", "d1", "success", ""]
    assert rows[5][1:4] == ["delete", "d2", "skipped"]


def test_write_audit_csv(tmp_path):
    path = write_audit_csv(_report(), tmp_path / "reports")
    assert path is not None and path.name.startswith("execution_")
    with path.open(encoding="utf-8", newline="") as f:
        rows = list(csv.reader(f))
    assert rows[0] == AUDIT_HEADERS
    assert len(rows) == 7


def test_write_audit_csv_failure_returns_none(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    assert write_audit_csv(_report(), blocker / "sub") is None


def test_write_json_report(tmp_path):
    group = make_group(
        "d1",
        make_asset("a", latitude=1.0, longitude=2.0),
        make_asset("b", time_zone="UTC"),
    )
    out = write_json_report(tmp_path / "r.json", report=_report(), analyses=[analyze(group)])
    data = json.loads(out.read_text(encoding="utf-8"))
    assert "generated_at" in data
    assert data["analyses"][0]["winner"]["asset_id"] == "a"
    assert data["analyses"][0]["winner"]["score"]["total"] == 30
    assert data["analyses"][0]["losers"][0]["score"]["total"] == 20
    assert data["report"]["deleted"] == 1


def test_logging_writes_to_directory(tmp_path):
    log_dir = init_logging(str(tmp_path / "logs"), level="DEBUG")
    try:
        logger.info("hello {}", "world")
        logger.complete()
    finally:
        logger.remove()
    latest = find_latest_log_file(str(log_dir))
    assert latest is not None
    assert "hello world" in latest.read_text(encoding="utf-8")


def test_find_latest_log_file_missing_dir(tmp_path):
    assert find_latest_log_file(str(tmp_path / "nothing")) is None


def test_explicit_settings_path_must_exist(tmp_path):
    with pytest.raises(ValidationError):
        _load_settings(str(tmp_path / "nope.json"))


def test_explicit_settings_path_is_read(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text('{"report": {"dir": "out"}}', encoding="utf-8")
    assert _load_settings(str(path)).get("report.dir") == "out"


def test_bundled_settings_are_optional():
    assert _load_settings(None).get("missing.key", "fallback") == "fallback"
