"""Audit CSV and JSON serialization of execution reports.

The CSV has one row per recorded outcome so a run can be reviewed (or
restored from the backup directory) without re-reading the logs.
"""

from __future__ import annotations

import csv
from dataclasses import asdict
from datetime import datetime
import json
from pathlib import Path
from typing import Any

from loguru import logger

from core.services.analysis_service import DuplicateAnalysis
from core.services.interfaces import (
    ExecutionReport,
    OperationFailed,
    OperationResult,
    OperationSkipped,
    OperationSuccess,
)

AUDIT_HEADERS = ["DuplicateId", "Stage", "AssetId", "Status", "Detail"]


def _detail(result: OperationResult) -> str:
    if isinstance(result, OperationSuccess):
        return result.path or ""
    if isinstance(result, OperationFailed):
        return result.error
    if isinstance(result, OperationSkipped):
        return result.reason
    return ""


def audit_rows(report: ExecutionReport) -> list[list[str]]:
    """Flatten `report` into audit CSV rows (without the header)."""
    rows: list[list[str]] = []
    for group in report.results:
        gid = group.duplicate_id
        consolidation = group.consolidation_result
        if consolidation is not None:
            moved = [
                name
                for name, flag in (
                    ("gps", consolidation.gps_transferred),
                    ("datetime", consolidation.datetime_transferred),
                    ("description", consolidation.description_transferred),
                )
                if flag
            ]
            rows.append(
                [
                    gid,
                    "consolidate",
                    group.winner_id,
                    "success",
                    f"{','.join(moved)} from {consolidation.source_asset_id}",
                ]
            )
        albums = group.album_transfer_result
        if albums is not None:
            rows.append(
                [
                    gid,
                    "albums",
                    group.winner_id,
                    "failed" if albums.had_failures else "success",
                    albums.error_message or ";".join(albums.album_names),
                ]
            )
        for download in group.download_results:
            rows.append([gid, "download", download.id, download.status, _detail(download)])
        if group.delete_result is not None:
            delete = group.delete_result
            rows.append([gid, "delete", delete.id, delete.status, _detail(delete)])
    return rows


def write_audit_csv(report: ExecutionReport, log_dir: str | Path) -> Path | None:
    """Write `execution_{ts}.csv` under `log_dir`; return its path or None on failure."""
    try:
        base_dir = Path(log_dir)
        base_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = base_dir / f"execution_{ts}.csv"
        with log_path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(AUDIT_HEADERS)
            writer.writerows(audit_rows(report))
    except (OSError, ValueError) as ex:
        logger.error("Write execution log failed: {}", ex)
        return None
    logger.info(
        "Execution log written: {} ({} downloaded, {} deleted, {} failed, {} skipped)",
        log_path,
        report.downloaded,
        report.deleted,
        report.failed,
        report.skipped,
    )
    return log_path


def analysis_to_dict(analysis: DuplicateAnalysis) -> dict[str, Any]:
    data = asdict(analysis)
    data["winner"]["score"]["total"] = analysis.winner.score.total
    for loser, scored in zip(data["losers"], analysis.losers):
        loser["score"]["total"] = scored.score.total
    return data


def write_json_report(
    path: str | Path,
    report: ExecutionReport | None = None,
    analyses: list[DuplicateAnalysis] | None = None,
) -> Path:
    """Dump the report and/or analyses as indented JSON at `path`."""
    payload: dict[str, Any] = {"generated_at": datetime.now().isoformat(timespec="seconds")}
    if analyses is not None:
        payload["analyses"] = [analysis_to_dict(a) for a in analyses]
    if report is not None:
        payload["report"] = asdict(report)
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    logger.info("Report written: {}", out)
    return out
