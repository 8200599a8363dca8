"""Per-page target geometry."""

from __future__ import annotations

from ..config import LayoutConfig
from ..types import DocumentStats, PageRecord, TargetGeometry


def baseline_geometry(stats: DocumentStats, config: LayoutConfig) -> TargetGeometry:
    """Smallest page every page of the document is allowed to have."""

    height = stats.typical_content_height + 2 * stats.padding
    return TargetGeometry(width=height * config.target_ratio, height=height)


def plan(stats: DocumentStats, config: LayoutConfig, record: PageRecord) -> TargetGeometry:
    """Fit one page to the document baseline.

    Pages never drop below the baseline (uniform zoom) and grow past it when
    their content is larger. A page narrower than the target ratio is widened
    until it matches; a wider page is left alone since it reads fine at
    fit-to-width. Nothing shrinks.
    """

    base = baseline_geometry(stats, config)
    epsilon = stats.padding
    height = max(base.height, record.content_height + 2 * epsilon)
    width = max(base.width, record.content_width + 2 * epsilon)
    ratio = config.target_ratio
    if width / height < ratio:
        width = height * ratio
    return TargetGeometry(width=width, height=height)
