"""Detection of metadata disagreements inside a duplicate group.

A group whose assets disagree on GPS, timezone, camera or capture time is
risky to resolve automatically: keeping one asset silently drops the other
value. Each detected disagreement is returned as data, never raised.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from core.models import Asset

# Roughly 11 meters at the equator
GPS_THRESHOLD = 0.0001


@dataclass(frozen=True)
class GpsConflict:
    values: list[tuple[float, float]] = field(default_factory=list)
    kind: str = field(default="gps", init=False)


@dataclass(frozen=True)
class TimezoneConflict:
    values: list[str] = field(default_factory=list)
    kind: str = field(default="timezone", init=False)


@dataclass(frozen=True)
class CameraInfoConflict:
    values: list[str] = field(default_factory=list)
    kind: str = field(default="camera_info", init=False)


@dataclass(frozen=True)
class CaptureTimeConflict:
    values: list[str] = field(default_factory=list)
    kind: str = field(default="capture_time", init=False)


MetadataConflict = GpsConflict | TimezoneConflict | CameraInfoConflict | CaptureTimeConflict


def detect_conflicts(assets: Sequence[Asset]) -> list[MetadataConflict]:
    """Return the metadata conflicts among `assets`.

    Assets without a given field take no part in that field's comparison.
    """
    conflicts: list[MetadataConflict] = []
    exifs = [a.exif_info for a in assets if a.exif_info is not None]

    coords = [
        (e.latitude, e.longitude)
        for e in exifs
        if e.latitude is not None and e.longitude is not None
    ]
    if _has_gps_conflict(coords):
        points = _dedupe_gps(coords)
        # A chain of close points can merge into one
        if len(points) > 1:
            conflicts.append(GpsConflict(values=points))

    timezones = _distinct_strings(e.time_zone for e in exifs if e.time_zone is not None)
    if timezones:
        conflicts.append(TimezoneConflict(values=timezones))

    cameras = _distinct_strings(_camera_label(e.make, e.model) for e in exifs)
    if cameras:
        conflicts.append(CameraInfoConflict(values=cameras))

    captures = _distinct_strings(
        e.date_time_original for e in exifs if e.date_time_original is not None
    )
    if captures:
        conflicts.append(CaptureTimeConflict(values=captures))

    return conflicts


def _camera_label(make: str | None, model: str | None) -> str | None:
    make = make or ""
    model = model or ""
    if not make and not model:
        return None
    return f"{make} {model}".strip()


def _differs(a: tuple[float, float], b: tuple[float, float]) -> bool:
    return abs(a[0] - b[0]) > GPS_THRESHOLD or abs(a[1] - b[1]) > GPS_THRESHOLD


def _has_gps_conflict(coords: list[tuple[float, float]]) -> bool:
    for i, first in enumerate(coords):
        for second in coords[i + 1 :]:
            if _differs(first, second):
                return True
    return False


def _dedupe_gps(coords: list[tuple[float, float]]) -> list[tuple[float, float]]:
    """Merge points that lie within the threshold of an already kept point."""
    unique: list[tuple[float, float]] = []
    for point in coords:
        if all(_differs(point, kept) for kept in unique):
            unique.append(point)
    return unique


def _distinct_strings(values: Iterable[str | None]) -> list[str] | None:
    """Return trimmed originals of distinct values, or None if fewer than two.

    Values compare after trim + case-fold; blank values are ignored.
    """
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        if value is None:
            continue
        trimmed = value.strip()
        key = trimmed.casefold()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(trimmed)
    return unique if len(unique) > 1 else None
