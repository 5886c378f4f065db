from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from loguru import logger

from core.errors import PhotoDedupeError, TransportError, ValidationError
from core.services.analysis_service import DuplicateAnalysis, analyze_all
from core.services.interfaces import OperationFailed
from infrastructure.execution_service import Executor
from infrastructure.immich_client import ImmichClient
from infrastructure.logging import find_latest_log_file, get_report_directory, init_logging
from infrastructure.report_writer import write_audit_csv, write_json_report
from infrastructure.restore_service import restore_backups
from infrastructure.settings import JsonSettings, load_execution_config, load_server_config

BASE_DIR = Path(__file__).parent


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve Immich duplicate groups, keeping the asset with the richest metadata"
    )
    parser.add_argument("--url", help="Immich server URL (or IMMICH_URL)")
    parser.add_argument("--api-key", dest="api_key", help="Immich API key (or IMMICH_API_KEY)")
    parser.add_argument("--settings", help="Path to settings.json")
    parser.add_argument("--backup-dir", dest="backup_dir", help="Where loser backups are saved")
    parser.add_argument("--rps", dest="requests_per_sec", type=int, help="Max requests per second")
    parser.add_argument(
        "--max-concurrent", dest="max_concurrent", type=int, help="Max calls in flight"
    )
    parser.add_argument(
        "--force-delete",
        dest="force_delete",
        action="store_true",
        help="Delete permanently instead of trashing",
    )
    parser.add_argument(
        "--no-preserve-albums",
        dest="preserve_albums",
        action="store_false",
        help="Do not move album membership to winners",
    )
    parser.add_argument(
        "--include-review",
        dest="include_review",
        action="store_true",
        help="Also execute groups with metadata conflicts",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Perform backups and deletions (default is a dry run)",
    )
    parser.add_argument(
        "--restore",
        metavar="BACKUP_DIR",
        help="Upload the backups in BACKUP_DIR back to the server instead of deduplicating",
    )
    parser.add_argument("--report", help="Write a JSON report to this path")
    parser.add_argument("--log-dir", dest="log_dir", help="Directory for log files")
    parser.set_defaults(force_delete=None, preserve_albums=None)
    return parser


def _print_summary(analyses: list[DuplicateAnalysis]) -> None:
    review = [a for a in analyses if a.needs_review]
    logger.info("{} duplicate groups, {} need review", len(analyses), len(review))
    for a in analyses:
        flag = " [REVIEW]" if a.needs_review else ""
        logger.info(
            "{}{}: keep {} (score {}), remove {}",
            a.duplicate_id,
            flag,
            a.winner.filename,
            a.winner.score.total,
            ", ".join(f"{loser.filename} ({loser.score.total})" for loser in a.losers) or "-",
        )
        for conflict in a.conflicts:
            logger.info("    {} conflict: {}", conflict.kind, conflict.values)


def _load_settings(settings_arg: str | None) -> JsonSettings:
    """An explicit path must exist; the bundled settings.json is optional."""
    if settings_arg:
        try:
            return JsonSettings(settings_arg)
        except FileNotFoundError as ex:
            raise ValidationError(str(ex)) from ex
    default = BASE_DIR / "settings.json"
    return JsonSettings(default if default.exists() else None)


async def _restore(client: ImmichClient, executor: Executor, backup_dir: str, execute: bool) -> int:
    results = await restore_backups(client, executor.gate, Path(backup_dir), dry_run=not execute)
    failed = sum(1 for r in results if isinstance(r, OperationFailed))
    logger.info("Restore finished: {} files, {} failed", len(results), failed)
    return 1 if failed else 0


async def _run(args: argparse.Namespace) -> int:
    settings = _load_settings(args.settings)
    server = load_server_config(settings)
    config = load_execution_config(
        settings,
        requests_per_sec=args.requests_per_sec,
        max_concurrent=args.max_concurrent,
        backup_dir=args.backup_dir,
        force_delete=args.force_delete,
        preserve_albums=args.preserve_albums,
    )

    client = ImmichClient(args.url or server.url or "", args.api_key or server.api_key or "")
    executor = Executor(client, config)

    if not await executor.gate.call(client.ping):
        raise TransportError(f"Server at {client.base_url} did not answer ping")
    logger.info("Connected to {}", client.base_url)
    if args.restore:
        return await _restore(client, executor, args.restore, args.execute)

    groups = await executor.gate.call(client.list_duplicate_groups)
    analyses = analyze_all(groups)
    _print_summary(analyses)

    selected = analyses if args.include_review else [a for a in analyses if not a.needs_review]
    report = None
    if args.execute:
        logger.info("Executing {} of {} groups", len(selected), len(analyses))
        report = await executor.execute_all(selected)
        write_audit_csv(report, settings.get("report.dir", get_report_directory()))
    else:
        logger.info("Dry run: {} groups would be executed (use --execute)", len(selected))

    if args.report:
        write_json_report(args.report, report=report, analyses=analyses)
    if report is not None and report.failed:
        return 1
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    log_dir = init_logging(args.log_dir)
    try:
        return asyncio.run(_run(args))
    except PhotoDedupeError as ex:
        logger.error("{}", ex)
        return 2
    finally:
        logger.info("Log file: {}", find_latest_log_file(str(log_dir)))


if __name__ == "__main__":
    raise SystemExit(main())
