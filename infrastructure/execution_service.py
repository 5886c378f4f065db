"""Execution of duplicate analyses against the photo server.

For each group the executor consolidates metadata onto the winner, moves
album membership from the losers, downloads a backup of every loser and
finally deletes the losers that were backed up. Every remote call goes
through the executor's `RateGate`. Outcomes are recorded in an
`ExecutionReport`; only a failure to create the backup directory escapes
`execute_all`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

from loguru import logger
from tqdm import tqdm

from core.errors import ApiError, BackupDirectoryError, PhotoDedupeError
from core.models import Album
from core.services.analysis_service import DuplicateAnalysis
from core.services.interfaces import (
    AlbumTransferResult,
    ConsolidationResult,
    ExecutionConfig,
    ExecutionReport,
    GroupResult,
    IPhotoService,
    OperationFailed,
    OperationResult,
    OperationSkipped,
    OperationSuccess,
)
from infrastructure.rate_gate import RateGate
from infrastructure.retry import retry_with_backoff

SKIP_ALBUM_FAILURE = "album transfer failed after retry, skip deletion to preserve album integrity"
SKIP_NO_DOWNLOADS = "no assets were successfully downloaded"


def backup_path(backup_dir: Path, asset_id: str, filename: str) -> Path:
    """Return the backup destination; the id prefix keeps names unique."""
    return backup_dir / f"{asset_id}_{Path(filename).name}"


class Executor:
    """Coordinates the destructive side of duplicate resolution."""

    def __init__(
        self,
        service: IPhotoService,
        config: ExecutionConfig,
        gate: RateGate | None = None,
        retry: Callable[..., Awaitable[bool]] = retry_with_backoff,
        progress: bool = True,
    ) -> None:
        """Create an executor.

        Args:
            service: Photo server collaborator.
            config: Execution settings.
            gate: Rate gate for outbound calls; built from `config` if omitted.
            retry: Backoff loop used for album transfers.
            progress: Show a tqdm progress bar over the groups.
        """
        self._service = service
        self._config = config
        self._gate = gate or RateGate(config.requests_per_sec, config.max_concurrent)
        self._retry = retry
        self._progress = progress

    @property
    def gate(self) -> RateGate:
        return self._gate

    async def execute_all(self, analyses: Iterable[DuplicateAnalysis]) -> ExecutionReport:
        """Execute every analysis in order and return the accumulated report.

        Raises:
            BackupDirectoryError: If the backup directory cannot be created.
        """
        report = ExecutionReport()
        backup_dir = self._config.backup_dir
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as ex:
            logger.error("Cannot create backup directory {}: {}", backup_dir, ex)
            raise BackupDirectoryError(f"Cannot create backup directory {backup_dir}: {ex}") from ex

        items = list(analyses)
        with tqdm(
            total=len(items), desc="Executing groups", unit="groups", disable=not self._progress
        ) as pbar:
            for index, analysis in enumerate(items, start=1):
                pbar.set_postfix_str(analysis.duplicate_id)
                logger.info(
                    "Processing group {}/{} {} ({} losers)",
                    index,
                    len(items),
                    analysis.duplicate_id,
                    len(analysis.losers),
                )
                try:
                    result = await self.execute_group(analysis)
                except Exception as ex:  # pylint: disable=broad-exception-caught
                    logger.exception("Group {} aborted: {}", analysis.duplicate_id, ex)
                    result = GroupResult(
                        duplicate_id=analysis.duplicate_id,
                        winner_id=analysis.winner.asset_id,
                        delete_result=OperationFailed(id=analysis.duplicate_id, error=str(ex)),
                    )
                report.add_group_result(result)
                pbar.update(1)

        logger.info(
            "Execution finished: {} groups, {} downloaded, {} deleted, {} failed, {} skipped",
            report.total_groups,
            report.downloaded,
            report.deleted,
            report.failed,
            report.skipped,
        )
        return report

    async def execute_group(self, analysis: DuplicateAnalysis) -> GroupResult:
        """Run the consolidate / albums / download / delete pipeline for one group."""
        result = GroupResult(duplicate_id=analysis.duplicate_id, winner_id=analysis.winner.asset_id)

        result.consolidation_result = await self.consolidate_metadata(analysis)

        if self._config.preserve_albums:
            result.album_transfer_result = await self.transfer_albums(analysis)
            if result.album_transfer_result.had_failures:
                logger.warning(
                    "Group {}: {}",
                    analysis.duplicate_id,
                    result.album_transfer_result.error_message,
                )
                result.delete_result = OperationSkipped(
                    id=analysis.duplicate_id, reason=SKIP_ALBUM_FAILURE
                )
                return result

        result.download_results = await self._download_losers(analysis)

        downloaded_ids = [r.id for r in result.download_results if isinstance(r, OperationSuccess)]
        if not downloaded_ids:
            result.delete_result = OperationSkipped(
                id=analysis.duplicate_id, reason=SKIP_NO_DOWNLOADS
            )
            return result

        result.delete_result = await self._delete(analysis.duplicate_id, downloaded_ids)
        return result

    async def consolidate_metadata(self, analysis: DuplicateAnalysis) -> ConsolidationResult | None:
        """Copy GPS, capture time and description the winner lacks from the losers.

        For each missing field the first loser (in loser order) that has it
        is used. Failures are logged and yield None.
        """
        winner_id = analysis.winner.asset_id
        try:
            winner = await self._gate.call(self._service.get_asset, winner_id)
        except PhotoDedupeError as ex:
            logger.warning("No consolidation for {}: cannot fetch winner ({})", winner_id, ex)
            return None

        exif = winner.exif_info
        need_gps = not (exif and exif.has_gps())
        need_datetime = not (exif and exif.date_time_original is not None)
        need_description = not (exif and exif.description is not None)
        if not (need_gps or need_datetime or need_description):
            return None

        gps: tuple[float, float, str] | None = None
        datetime_value: tuple[str, str] | None = None
        description: tuple[str, str] | None = None

        for loser in analysis.losers:
            try:
                asset = await self._gate.call(self._service.get_asset, loser.asset_id)
            except PhotoDedupeError as ex:
                logger.warning("Skipping loser {} for consolidation: {}", loser.asset_id, ex)
                continue

            loser_exif = asset.exif_info
            if loser_exif is not None:
                if (
                    need_gps
                    and gps is None
                    and loser_exif.latitude is not None
                    and loser_exif.longitude is not None
                ):
                    gps = (loser_exif.latitude, loser_exif.longitude, loser.asset_id)
                if (
                    need_datetime
                    and datetime_value is None
                    and loser_exif.date_time_original is not None
                ):
                    datetime_value = (loser_exif.date_time_original, loser.asset_id)
                if need_description and description is None and loser_exif.description is not None:
                    description = (loser_exif.description, loser.asset_id)

            if (
                (not need_gps or gps is not None)
                and (not need_datetime or datetime_value is not None)
                and (not need_description or description is not None)
            ):
                break

        if gps is None and datetime_value is None and description is None:
            return None

        source_asset_id = next(
            (found[-1] for found in (gps, datetime_value, description) if found is not None), None
        )
        try:
            await self._gate.call(
                self._service.update_asset_metadata,
                winner_id,
                latitude=gps[0] if gps else None,
                longitude=gps[1] if gps else None,
                date_time_original=datetime_value[0] if datetime_value else None,
                description=description[0] if description else None,
            )
        except PhotoDedupeError as ex:
            logger.warning("No consolidation for {}: update failed ({})", winner_id, ex)
            return None

        logger.info(
            "Consolidated metadata onto {} from {} (gps={}, datetime={}, description={})",
            winner_id,
            source_asset_id,
            gps is not None,
            datetime_value is not None,
            description is not None,
        )
        return ConsolidationResult(
            gps_transferred=gps is not None,
            datetime_transferred=datetime_value is not None,
            description_transferred=description is not None,
            source_asset_id=source_asset_id,
        )

    async def transfer_albums(self, analysis: DuplicateAnalysis) -> AlbumTransferResult:
        """Add the winner to every loser album and remove the losers from it."""
        albums: dict[str, Album] = {}
        for loser in analysis.losers:
            try:
                found = await self._gate.call(self._service.list_albums_for_asset, loser.asset_id)
            except PhotoDedupeError as ex:
                logger.warning(
                    "Album lookup failed for {}, treating as none: {}", loser.asset_id, ex
                )
                continue
            for album in found:
                albums.setdefault(album.id, album)

        if not albums:
            return AlbumTransferResult()

        winner_id = analysis.winner.asset_id
        loser_ids = [loser.asset_id for loser in analysis.losers]
        transferred_ids: list[str] = []
        transferred_names: list[str] = []
        errors: list[str] = []

        for album in albums.values():

            async def attempt(album_id: str = album.id) -> None:
                await self._transfer_album_once(album_id, winner_id, loser_ids)

            ok = await self._retry(attempt, description=f"Album transfer '{album.album_name}'")
            if ok:
                transferred_ids.append(album.id)
                transferred_names.append(album.album_name)
            else:
                errors.append(f"Failed to transfer album '{album.album_name}' after retry")

        return AlbumTransferResult(
            albums_transferred=len(transferred_ids),
            album_ids=transferred_ids,
            album_names=transferred_names,
            had_failures=bool(errors),
            error_message="; ".join(errors) if errors else None,
        )

    async def _transfer_album_once(
        self, album_id: str, winner_id: str, loser_ids: list[str]
    ) -> None:
        try:
            await self._gate.call(self._service.add_assets_to_album, album_id, [winner_id])
        except ApiError as ex:
            if not ex.is_already_present():
                raise
            logger.debug("Winner {} already in album {}", winner_id, album_id)
        await self._gate.call(self._service.remove_assets_from_album, album_id, loser_ids)

    async def _download_losers(self, analysis: DuplicateAnalysis) -> list[OperationResult]:
        # Fan-out is bounded by the gate's semaphore; gather keeps loser order
        return list(
            await asyncio.gather(
                *(self._download_one(loser.asset_id, loser.filename) for loser in analysis.losers)
            )
        )

    async def _download_one(self, asset_id: str, filename: str) -> OperationResult:
        path = backup_path(self._config.backup_dir, asset_id, filename)
        try:
            size = await self._gate.call(self._service.download_original, asset_id, path)
        except (PhotoDedupeError, OSError) as ex:
            logger.error("Download failed for {}: {}", asset_id, ex)
            return OperationFailed(id=asset_id, error=str(ex))
        logger.info("Backed up {} to {} ({} bytes)", asset_id, path, size)
        return OperationSuccess(id=asset_id, path=str(path))

    async def _delete(self, duplicate_id: str, asset_ids: list[str]) -> OperationResult:
        try:
            await self._gate.call(self._service.delete_assets, asset_ids, self._config.force_delete)
        except PhotoDedupeError as ex:
            logger.error("Delete failed for group {}: {}", duplicate_id, ex)
            return OperationFailed(id=duplicate_id, error=str(ex))
        logger.info(
            "{} {} assets of group {}",
            "Deleted" if self._config.force_delete else "Trashed",
            len(asset_ids),
            duplicate_id,
        )
        return OperationSuccess(id=duplicate_id)
