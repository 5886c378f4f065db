"""Re-upload loser backups written by the executor."""

from __future__ import annotations

import asyncio
from pathlib import Path

from loguru import logger

from core.errors import BackupDirectoryError, PhotoDedupeError
from core.services.interfaces import (
    IPhotoService,
    OperationFailed,
    OperationResult,
    OperationSkipped,
    OperationSuccess,
)
from infrastructure.rate_gate import RateGate

PART_SUFFIX = ".part"


def find_backups(backup_dir: Path) -> list[Path]:
    """Completed backup files in `backup_dir`, sorted by name."""
    return sorted(
        p
        for p in backup_dir.iterdir()
        if p.is_file() and not p.name.startswith(".") and p.suffix != PART_SUFFIX
    )


async def restore_backups(
    service: IPhotoService,
    gate: RateGate,
    backup_dir: Path,
    dry_run: bool = False,
) -> list[OperationResult]:
    """Upload every backup in `backup_dir` as a new asset.

    Results are keyed by file name and keep the order of `find_backups`. A file
    the server already holds is reported as skipped.

    Raises:
        BackupDirectoryError: If `backup_dir` is not a readable directory.
    """
    backup_dir = Path(backup_dir)
    try:
        files = find_backups(backup_dir)
    except OSError as ex:
        raise BackupDirectoryError(f"Cannot read backup directory {backup_dir}: {ex}") from ex

    logger.info("{} backups found in {}", len(files), backup_dir)
    if dry_run:
        for path in files:
            logger.info("Would restore {}", path.name)
        return [OperationSkipped(id=p.name, reason="dry run") for p in files]

    async def upload(path: Path) -> OperationResult:
        try:
            result = await gate.call(service.upload_asset, path)
        except (PhotoDedupeError, OSError) as ex:
            logger.error("Restore failed for {}: {}", path.name, ex)
            return OperationFailed(id=path.name, error=str(ex))
        if result.duplicate:
            logger.info("{} already on server as {}", path.name, result.id)
            return OperationSkipped(id=path.name, reason=f"duplicate of {result.id}")
        logger.info("Restored {} as {}", path.name, result.id)
        return OperationSuccess(id=path.name, path=str(path))

    return list(await asyncio.gather(*(upload(p) for p in files)))
