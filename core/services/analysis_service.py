"""Winner selection for duplicate groups.

Ranking uses a decorated multi-key sort: metadata score descending, then
file size descending, then the group's original order (Python's sort is
stable, so equal keys keep input order).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from core.errors import ValidationError
from core.models import DuplicateGroup
from core.services.conflict_service import MetadataConflict, detect_conflicts
from core.services.scoring import ScoredAsset, to_scored_asset


@dataclass(frozen=True)
class DuplicateAnalysis:
    """Decision for one duplicate group.

    Attributes:
        duplicate_id: Identifier of the analysed group.
        winner: Asset to keep.
        losers: Every other asset, in ranking order.
        conflicts: Metadata disagreements across the group.
        needs_review: True exactly when `conflicts` is non-empty.
    """

    duplicate_id: str
    winner: ScoredAsset
    losers: list[ScoredAsset] = field(default_factory=list)
    conflicts: list[MetadataConflict] = field(default_factory=list)
    needs_review: bool = False


def _rank(scored: list[ScoredAsset]) -> list[ScoredAsset]:
    decorated = [((-s.score.total, -(s.file_size or 0)), s) for s in scored]
    decorated.sort(key=lambda x: x[0])
    return [s for _, s in decorated]


def analyze(group: DuplicateGroup) -> DuplicateAnalysis:
    """Pick the winner of `group` and flag conflicting metadata.

    Raises:
        ValidationError: If the group contains no assets.
    """
    if not group.assets:
        raise ValidationError(f"Duplicate group {group.duplicate_id} has no assets")

    ranked = _rank([to_scored_asset(a) for a in group.assets])
    # Conflicts look at the server order, not the ranking
    conflicts = detect_conflicts(group.assets)

    return DuplicateAnalysis(
        duplicate_id=group.duplicate_id,
        winner=ranked[0],
        losers=ranked[1:],
        conflicts=conflicts,
        needs_review=bool(conflicts),
    )


def analyze_all(groups: Iterable[DuplicateGroup]) -> list[DuplicateAnalysis]:
    """Analyse every group in order, skipping empty ones."""
    analyses: list[DuplicateAnalysis] = []
    for group in groups:
        try:
            analyses.append(analyze(group))
        except ValidationError as ex:
            logger.warning("Skipping group: {}", ex)
    return analyses
