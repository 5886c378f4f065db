"""Metadata completeness scoring for assets.

Each metadata category an asset carries contributes a fixed weight. GPS is
weighted highest because it cannot be recovered once lost; location is
derived from GPS by reverse geocoding and weighs the least.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.models import Asset

GPS_WEIGHT = 30
TIMEZONE_WEIGHT = 20
CAMERA_INFO_WEIGHT = 15
CAPTURE_TIME_WEIGHT = 15
LENS_INFO_WEIGHT = 10
LOCATION_WEIGHT = 10


@dataclass(frozen=True)
class MetadataScore:
    """Per-category contributions and their sum.

    Scores compare by `total` only; categories are informational.
    """

    gps: int = 0
    timezone: int = 0
    camera_info: int = 0
    capture_time: int = 0
    lens_info: int = 0
    location: int = 0

    @property
    def total(self) -> int:
        return (
            self.gps
            + self.timezone
            + self.camera_info
            + self.capture_time
            + self.lens_info
            + self.location
        )

    def __lt__(self, other: MetadataScore) -> bool:
        return self.total < other.total

    def __le__(self, other: MetadataScore) -> bool:
        return self.total <= other.total

    def __gt__(self, other: MetadataScore) -> bool:
        return self.total > other.total

    def __ge__(self, other: MetadataScore) -> bool:
        return self.total >= other.total


@dataclass(frozen=True)
class ScoredAsset:
    """An asset reduced to what winner selection needs."""

    asset_id: str
    filename: str
    score: MetadataScore
    file_size: int | None = None


def score_asset(asset: Asset) -> MetadataScore:
    """Return the metadata completeness score of `asset`."""
    exif = asset.exif_info
    if exif is None:
        return MetadataScore()
    return MetadataScore(
        gps=GPS_WEIGHT if exif.has_gps() else 0,
        timezone=TIMEZONE_WEIGHT if exif.has_timezone() else 0,
        camera_info=CAMERA_INFO_WEIGHT if exif.has_camera_info() else 0,
        capture_time=CAPTURE_TIME_WEIGHT if exif.has_capture_time() else 0,
        lens_info=LENS_INFO_WEIGHT if exif.has_lens_info() else 0,
        location=LOCATION_WEIGHT if exif.has_location() else 0,
    )


def to_scored_asset(asset: Asset) -> ScoredAsset:
    return ScoredAsset(
        asset_id=asset.id,
        filename=asset.original_file_name,
        score=score_asset(asset),
        file_size=asset.file_size,
    )
