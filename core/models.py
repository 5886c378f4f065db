"""Core domain models for remote assets, albums and duplicate groups.

Instances are snapshots of what the photo server returned; they are never
mutated locally. `from_api` constructors accept the server's camelCase JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AssetType(str, Enum):
    """Kind of media stored in an asset."""

    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> AssetType:
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class ExifInfo:
    """EXIF block of an asset. Every field may be missing."""

    latitude: float | None = None
    longitude: float | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    time_zone: str | None = None
    date_time_original: str | None = None
    make: str | None = None
    model: str | None = None
    lens_model: str | None = None
    exif_image_width: int | None = None
    exif_image_height: int | None = None
    file_size_in_byte: int | None = None
    description: str | None = None
    rating: int | None = None

    def has_gps(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def has_timezone(self) -> bool:
        return self.time_zone is not None

    def has_camera_info(self) -> bool:
        return self.make is not None or self.model is not None

    def has_capture_time(self) -> bool:
        return self.date_time_original is not None

    def has_lens_info(self) -> bool:
        return self.lens_model is not None

    def has_location(self) -> bool:
        return self.city is not None or self.country is not None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ExifInfo:
        """Build from the server's `exifInfo` object."""
        return cls(
            latitude=_opt_float(data.get("latitude")),
            longitude=_opt_float(data.get("longitude")),
            city=data.get("city"),
            state=data.get("state"),
            country=data.get("country"),
            time_zone=data.get("timeZone"),
            date_time_original=data.get("dateTimeOriginal"),
            make=data.get("make"),
            model=data.get("model"),
            lens_model=data.get("lensModel"),
            exif_image_width=_opt_int(data.get("exifImageWidth")),
            exif_image_height=_opt_int(data.get("exifImageHeight")),
            file_size_in_byte=_opt_int(data.get("fileSizeInByte")),
            description=data.get("description"),
            rating=_opt_int(data.get("rating")),
        )


@dataclass(frozen=True)
class Asset:
    """A single asset as reported by the photo server."""

    id: str
    original_file_name: str
    asset_type: AssetType = AssetType.IMAGE
    exif_info: ExifInfo | None = None
    is_trashed: bool = False
    is_favorite: bool = False
    is_archived: bool = False
    file_created_at: str | None = None
    local_date_time: str | None = None
    checksum: str | None = None

    @property
    def file_size(self) -> int | None:
        return self.exif_info.file_size_in_byte if self.exif_info else None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Asset:
        """Build from an `AssetResponseDto` JSON object."""
        exif = data.get("exifInfo")
        return cls(
            id=str(data["id"]),
            original_file_name=str(data.get("originalFileName", "") or ""),
            asset_type=AssetType.parse(data.get("type", "IMAGE")),
            exif_info=ExifInfo.from_api(exif) if isinstance(exif, dict) else None,
            is_trashed=bool(data.get("isTrashed", False)),
            is_favorite=bool(data.get("isFavorite", False)),
            is_archived=bool(data.get("isArchived", False)),
            file_created_at=data.get("fileCreatedAt"),
            local_date_time=data.get("localDateTime"),
            checksum=data.get("checksum"),
        )


@dataclass(frozen=True)
class DuplicateGroup:
    """Assets the server considers duplicates of each other, in server order."""

    duplicate_id: str
    assets: list[Asset] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DuplicateGroup:
        return cls(
            duplicate_id=str(data["duplicateId"]),
            assets=[Asset.from_api(a) for a in data.get("assets", []) or []],
        )


@dataclass(frozen=True)
class Album:
    """An album an asset belongs to."""

    id: str
    album_name: str
    owner_id: str | None = None
    description: str | None = None
    asset_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Album:
        return cls(
            id=str(data["id"]),
            album_name=str(data.get("albumName", "") or ""),
            owner_id=data.get("ownerId"),
            description=data.get("description"),
            asset_ids=[str(a) for a in data.get("assetIds", []) or []],
        )


@dataclass(frozen=True)
class UploadResult:
    """Server answer to an asset upload."""

    id: str
    duplicate: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> UploadResult:
        return cls(
            id=str(data["id"]),
            duplicate=bool(data.get("duplicate")) or data.get("status") == "duplicate",
        )


def _opt_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _opt_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
