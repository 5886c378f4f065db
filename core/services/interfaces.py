"""Core service interfaces and shared data structures.

This module defines the execution data model passed between the analysis
engine, the executor and the report writers, plus the protocol that any
photo-server collaborator must implement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from core.errors import ValidationError
from core.models import Album, Asset, DuplicateGroup, UploadResult


@dataclass(frozen=True)
class ExecutionConfig:
    """Settings fixed for the lifetime of one executor.

    Attributes:
        requests_per_sec: Token refill rate for outbound calls.
        max_concurrent: Maximum number of outbound calls in flight.
        backup_dir: Destination directory for loser backups.
        force_delete: Permanently delete instead of moving to trash.
        preserve_albums: Move album membership from losers to the winner.
    """

    requests_per_sec: int = 10
    max_concurrent: int = 5
    backup_dir: Path = Path("./backups")
    force_delete: bool = False
    preserve_albums: bool = True

    def __post_init__(self) -> None:
        if self.requests_per_sec <= 0:
            raise ValidationError("requests_per_sec must be positive")
        if self.max_concurrent <= 0:
            raise ValidationError("max_concurrent must be positive")
        object.__setattr__(self, "backup_dir", Path(self.backup_dir))


@dataclass(frozen=True)
class OperationSuccess:
    id: str
    path: str | None = None
    status: str = field(default="success", init=False)


@dataclass(frozen=True)
class OperationFailed:
    id: str
    error: str
    status: str = field(default="failed", init=False)


@dataclass(frozen=True)
class OperationSkipped:
    id: str
    reason: str
    status: str = field(default="skipped", init=False)


OperationResult = OperationSuccess | OperationFailed | OperationSkipped


@dataclass(frozen=True)
class ConsolidationResult:
    """Metadata fields copied from a loser onto the winner."""

    gps_transferred: bool
    datetime_transferred: bool
    description_transferred: bool
    source_asset_id: str | None


@dataclass(frozen=True)
class AlbumTransferResult:
    """Outcome of moving album membership from losers to the winner."""

    albums_transferred: int = 0
    album_ids: list[str] = field(default_factory=list)
    album_names: list[str] = field(default_factory=list)
    had_failures: bool = False
    error_message: str | None = None


@dataclass
class GroupResult:
    """Everything that happened while executing one duplicate group."""

    duplicate_id: str
    winner_id: str
    consolidation_result: ConsolidationResult | None = None
    album_transfer_result: AlbumTransferResult | None = None
    download_results: list[OperationResult] = field(default_factory=list)
    delete_result: OperationResult | None = None


@dataclass
class ExecutionReport:
    """Running totals over all executed groups.

    Counters are advanced by `add_group_result` as each group completes.
    """

    total_groups: int = 0
    downloaded: int = 0
    deleted: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[GroupResult] = field(default_factory=list)

    def add_group_result(self, result: GroupResult) -> None:
        """Append `result` and update the counters."""
        self.total_groups += 1

        succeeded = 0
        for download in result.download_results:
            if isinstance(download, OperationSuccess):
                self.downloaded += 1
                succeeded += 1
            elif isinstance(download, OperationFailed):
                self.failed += 1
            else:
                self.skipped += 1

        delete = result.delete_result
        if isinstance(delete, OperationSuccess):
            # The batch delete covered exactly the successful downloads
            self.deleted += succeeded
        elif isinstance(delete, OperationFailed):
            self.failed += 1
        elif isinstance(delete, OperationSkipped):
            self.skipped += 1

        self.results.append(result)


class IPhotoService(Protocol):
    """Remote photo server operations the executor depends on.

    All methods are coroutines. Failures are raised as `core.errors` types.
    """

    async def list_duplicate_groups(self) -> list[DuplicateGroup]:
        """Return every duplicate group the server currently reports."""
        raise NotImplementedError

    async def get_asset(self, asset_id: str) -> Asset:
        """Return the current snapshot of one asset."""
        raise NotImplementedError

    async def download_original(self, asset_id: str, dest_path: Path) -> int:
        """Stream the original file to `dest_path`; return bytes written."""
        raise NotImplementedError

    async def delete_assets(self, asset_ids: list[str], permanent: bool) -> None:
        """Delete (or trash) all `asset_ids` in one call."""
        raise NotImplementedError

    async def update_asset_metadata(
        self,
        asset_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        date_time_original: str | None = None,
        description: str | None = None,
    ) -> None:
        """Update only the fields that are not None."""
        raise NotImplementedError

    async def list_albums_for_asset(self, asset_id: str) -> list[Album]:
        """Return the albums that contain `asset_id`."""
        raise NotImplementedError

    async def add_assets_to_album(self, album_id: str, asset_ids: list[str]) -> None:
        raise NotImplementedError

    async def remove_assets_from_album(self, album_id: str, asset_ids: list[str]) -> None:
        raise NotImplementedError

    async def upload_asset(self, file_path: Path) -> UploadResult:
        """Upload a local file as a new asset (used to restore backups)."""
        raise NotImplementedError
