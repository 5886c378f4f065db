"""HTTP client for the Immich REST API.

Implements `IPhotoService` on top of a `requests.Session`. Each coroutine
runs the blocking request in a worker thread so the asyncio pipeline keeps
its own scheduling; rate limiting is the caller's job.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
import string
from typing import Any
import uuid

from loguru import logger
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
import requests

from core.errors import ApiError, NotFoundError, TransportError, ValidationError
from core.models import Album, Asset, DuplicateGroup, UploadResult

DEFAULT_TIMEOUT = 30.0
CHUNK_SIZE = 1024 * 1024
UPLOAD_DEVICE_ID = "photo-dedupe-restore"

_UUID_LEN = 36
_HEX_OR_DASH = set(string.hexdigits + "-")

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heic",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".webm": "video/webm",
}

_HTTP_URL_ADAPTER = TypeAdapter(HttpUrl)


def _validate_base_url(base_url: str) -> str:
    value = (base_url or "").strip()
    try:
        _HTTP_URL_ADAPTER.validate_python(value)
    except PydanticValidationError as ex:
        raise ValidationError(f"Invalid URL: {base_url!r}") from ex
    return value.rstrip("/")


def original_filename(backup_name: str) -> str:
    """Strip the `{uuid}_` prefix backups are saved with, if present."""
    if (
        len(backup_name) > _UUID_LEN + 1
        and backup_name[_UUID_LEN] == "_"
        and set(backup_name[:_UUID_LEN]) <= _HEX_OR_DASH
    ):
        return backup_name[_UUID_LEN + 1 :]
    return backup_name


def mime_type_for(path: Path) -> str:
    return MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")


def _file_timestamp(path: Path) -> str:
    try:
        moment = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except OSError:
        moment = datetime.now(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ImmichClient:
    """Typed access to the Immich endpoints used for duplicate handling."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Create a client.

        Raises:
            ValidationError: If `api_key` is empty or `base_url` is not an
                http(s) URL.
        """
        if not api_key or not api_key.strip():
            raise ValidationError("API key must not be empty")
        self._base_url = _validate_base_url(base_url)
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"x-api-key": api_key.strip(), "Accept": "application/json"})

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self._timeout)
        try:
            response = self._session.request(method, self._url(path), **kwargs)
        except requests.RequestException as ex:
            raise TransportError(f"{method} {path} failed: {ex}") from ex
        if not response.ok:
            body = response.text or ""
            response.close()
            if response.status_code == 404:
                raise NotFoundError(body or path)
            raise ApiError(response.status_code, body)
        return response

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as ex:
            raise ApiError(response.status_code, f"Invalid JSON from {path}: {ex}") from ex

    # Blocking implementations

    def ping_sync(self) -> bool:
        data = self._json("GET", "/api/server/ping")
        return isinstance(data, dict) and data.get("res") == "pong"

    def list_duplicate_groups_sync(self) -> list[DuplicateGroup]:
        data = self._json("GET", "/api/duplicates")
        return [DuplicateGroup.from_api(g) for g in data or []]

    def get_asset_sync(self, asset_id: str) -> Asset:
        return Asset.from_api(self._json("GET", f"/api/assets/{asset_id}"))

    def download_original_sync(self, asset_id: str, dest_path: Path) -> int:
        """Stream the original to `dest_path` and return the byte count.

        Data goes to a `.part` file that is renamed once complete, so a broken
        transfer never leaves a file under the final name.
        """
        dest = Path(dest_path)
        part = dest.with_suffix(dest.suffix + ".part")
        response = self._request("GET", f"/api/assets/{asset_id}/original", stream=True)
        written = 0
        try:
            with part.open("wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
            part.replace(dest)
        except requests.RequestException as ex:
            part.unlink(missing_ok=True)
            raise TransportError(f"Download of {asset_id} interrupted: {ex}") from ex
        except BaseException:
            part.unlink(missing_ok=True)
            raise
        finally:
            response.close()
        return written

    def delete_assets_sync(self, asset_ids: list[str], permanent: bool) -> None:
        self._request("DELETE", "/api/assets", json={"ids": list(asset_ids), "force": permanent})

    def update_asset_metadata_sync(
        self,
        asset_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        date_time_original: str | None = None,
        description: str | None = None,
    ) -> None:
        body: dict[str, Any] = {}
        if latitude is not None:
            body["latitude"] = latitude
        if longitude is not None:
            body["longitude"] = longitude
        if date_time_original is not None:
            body["dateTimeOriginal"] = date_time_original
        if description is not None:
            body["description"] = description
        if not body:
            logger.debug("Nothing to update for {}", asset_id)
            return
        self._request("PUT", f"/api/assets/{asset_id}", json=body)

    def list_albums_for_asset_sync(self, asset_id: str) -> list[Album]:
        data = self._json("GET", "/api/albums", params={"assetId": asset_id})
        return [Album.from_api(a) for a in data or []]

    def add_assets_to_album_sync(self, album_id: str, asset_ids: list[str]) -> None:
        response = self._request("PUT", f"/api/albums/{album_id}/assets", json={"ids": asset_ids})
        _raise_on_item_errors(response, album_id, "add")

    def remove_assets_from_album_sync(self, album_id: str, asset_ids: list[str]) -> None:
        response = self._request(
            "DELETE", f"/api/albums/{album_id}/assets", json={"ids": asset_ids}
        )
        _raise_on_item_errors(response, album_id, "remove")

    def upload_asset_sync(self, file_path: Path) -> UploadResult:
        path = Path(file_path)
        filename = original_filename(path.name)
        timestamp = _file_timestamp(path)
        form = {
            "deviceAssetId": f"restore-{uuid.uuid4()}",
            "deviceId": UPLOAD_DEVICE_ID,
            "fileCreatedAt": timestamp,
            "fileModifiedAt": timestamp,
        }
        with path.open("rb") as f:
            files = {"assetData": (filename, f, mime_type_for(path))}
            data = self._json("POST", "/api/assets", data=form, files=files)
        return UploadResult.from_api(data)

    # IPhotoService

    async def ping(self) -> bool:
        return await asyncio.to_thread(self.ping_sync)

    async def list_duplicate_groups(self) -> list[DuplicateGroup]:
        return await asyncio.to_thread(self.list_duplicate_groups_sync)

    async def get_asset(self, asset_id: str) -> Asset:
        return await asyncio.to_thread(self.get_asset_sync, asset_id)

    async def download_original(self, asset_id: str, dest_path: Path) -> int:
        return await asyncio.to_thread(self.download_original_sync, asset_id, dest_path)

    async def delete_assets(self, asset_ids: list[str], permanent: bool) -> None:
        await asyncio.to_thread(self.delete_assets_sync, asset_ids, permanent)

    async def update_asset_metadata(
        self,
        asset_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        date_time_original: str | None = None,
        description: str | None = None,
    ) -> None:
        await asyncio.to_thread(
            self.update_asset_metadata_sync,
            asset_id,
            latitude,
            longitude,
            date_time_original,
            description,
        )

    async def list_albums_for_asset(self, asset_id: str) -> list[Album]:
        return await asyncio.to_thread(self.list_albums_for_asset_sync, asset_id)

    async def add_assets_to_album(self, album_id: str, asset_ids: list[str]) -> None:
        await asyncio.to_thread(self.add_assets_to_album_sync, album_id, asset_ids)

    async def remove_assets_from_album(self, album_id: str, asset_ids: list[str]) -> None:
        await asyncio.to_thread(self.remove_assets_from_album_sync, album_id, asset_ids)

    async def upload_asset(self, file_path: Path) -> UploadResult:
        return await asyncio.to_thread(self.upload_asset_sync, file_path)


def _raise_on_item_errors(response: requests.Response, album_id: str, action: str) -> None:
    """Album bulk endpoints answer 200 with per-id results; surface failures.

    Items that failed only because they were already (or not) in the album
    are reported as a 400 "duplicate" error so callers can treat them as
    no-ops.
    """
    try:
        items = response.json()
    except ValueError:
        return
    if not isinstance(items, list):
        return
    failures = [i for i in items if isinstance(i, dict) and not i.get("success", True)]
    if not failures:
        return
    reasons = sorted({str(i.get("error", "unknown")) for i in failures})
    if action == "add" and all(r == "duplicate" for r in reasons):
        raise ApiError(400, f"{len(failures)} assets already in album {album_id} (duplicate)")
    if action == "remove" and all(r == "not_found" for r in reasons):
        return
    raise ApiError(400, f"Failed to {action} assets in album {album_id}: {', '.join(reasons)}")
