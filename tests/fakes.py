"""In-memory photo service and asset builders shared by the tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

from core.errors import ApiError, NotFoundError
from core.models import Album, Asset, DuplicateGroup, ExifInfo, UploadResult


def make_asset(asset_id: str, filename: str | None = None, **exif) -> Asset:
    """Asset with an EXIF block built from `exif`; no EXIF when `exif` is empty."""
    return Asset(
        id=asset_id,
        original_file_name=filename or f"{asset_id}.jpg",
        exif_info=ExifInfo(**exif) if exif else None,
    )


def make_group(duplicate_id: str, *assets: Asset) -> DuplicateGroup:
    return DuplicateGroup(duplicate_id=duplicate_id, assets=list(assets))


class FakePhotoService:
    """Records every call; failures are configured per id."""

    def __init__(self, assets: list[Asset] | None = None) -> None:
        self.assets: dict[str, Asset] = {a.id: a for a in assets or []}
        self.groups: list[DuplicateGroup] = []
        self.albums: dict[str, list[Album]] = {}
        self.calls: list[tuple] = []
        self.fail_get: set[str] = set()
        self.fail_download: set[str] = set()
        self.fail_album_lookup: set[str] = set()
        self.add_errors: dict[str, list[ApiError]] = {}
        self.remove_errors: dict[str, list[ApiError]] = {}
        self.fail_add_always: set[str] = set()
        self.delete_error: ApiError | None = None
        self.update_error: ApiError | None = None
        self.deleted: list[tuple[list[str], bool]] = []
        self.updates: list[tuple[str, dict]] = []
        self.download_delay = 0.0
        self.fail_upload: set[str] = set()
        self.duplicate_uploads: set[str] = set()
        self.uploaded: list[str] = []

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def list_duplicate_groups(self) -> list[DuplicateGroup]:
        self.calls.append(("list_duplicate_groups",))
        return list(self.groups)

    async def get_asset(self, asset_id: str) -> Asset:
        self.calls.append(("get_asset", asset_id))
        if asset_id in self.fail_get or asset_id not in self.assets:
            raise NotFoundError(f"asset {asset_id}")
        return self.assets[asset_id]

    async def download_original(self, asset_id: str, dest_path: Path) -> int:
        self.calls.append(("download_original", asset_id, dest_path))
        if asset_id in self.fail_download:
            raise ApiError(500, f"cannot download {asset_id}")
        if self.download_delay:
            await asyncio.sleep(self.download_delay)
        data = f"original bytes of {asset_id}".encode()
        Path(dest_path).write_bytes(data)
        return len(data)

    async def delete_assets(self, asset_ids: list[str], permanent: bool) -> None:
        self.calls.append(("delete_assets", list(asset_ids), permanent))
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((list(asset_ids), permanent))

    async def update_asset_metadata(
        self,
        asset_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        date_time_original: str | None = None,
        description: str | None = None,
    ) -> None:
        self.calls.append(("update_asset_metadata", asset_id))
        if self.update_error is not None:
            raise self.update_error
        fields = {
            "latitude": latitude,
            "longitude": longitude,
            "date_time_original": date_time_original,
            "description": description,
        }
        self.updates.append((asset_id, {k: v for k, v in fields.items() if v is not None}))

    async def list_albums_for_asset(self, asset_id: str) -> list[Album]:
        self.calls.append(("list_albums_for_asset", asset_id))
        if asset_id in self.fail_album_lookup:
            raise ApiError(500, "album lookup failed")
        return list(self.albums.get(asset_id, []))

    async def add_assets_to_album(self, album_id: str, asset_ids: list[str]) -> None:
        self.calls.append(("add_assets_to_album", album_id, list(asset_ids)))
        if album_id in self.fail_add_always:
            raise ApiError(503, "album service unavailable")
        pending = self.add_errors.get(album_id)
        if pending:
            raise pending.pop(0)

    async def remove_assets_from_album(self, album_id: str, asset_ids: list[str]) -> None:
        self.calls.append(("remove_assets_from_album", album_id, list(asset_ids)))
        pending = self.remove_errors.get(album_id)
        if pending:
            raise pending.pop(0)

    async def upload_asset(self, file_path: Path) -> UploadResult:
        name = Path(file_path).name
        self.calls.append(("upload_asset", name))
        if name in self.fail_upload:
            raise ApiError(500, f"cannot upload {name}")
        self.uploaded.append(name)
        return UploadResult(id=f"new-{name}", duplicate=name in self.duplicate_uploads)
