"""Document-wide baseline statistics."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..config import LayoutConfig, StatisticsConfig
from ..telemetry import log_event
from ..types import DocumentStats, PageRecord

LOGGER = logging.getLogger(__name__)


def median_height(heights: Sequence[float]) -> Optional[float]:
    """Middle element of the sorted heights; the upper middle for even counts."""

    if not heights:
        return None
    data = sorted(heights)
    return data[len(data) // 2]


class StatisticsAggregator:
    """Derive the typical content height of a document.

    The median keeps cover pages (too short) and fold-outs or long captures
    (too tall) from dragging the baseline away from the common page.
    """

    def __init__(self, config: Optional[StatisticsConfig] = None):
        self.config = config or StatisticsConfig()

    def aggregate(self, records: Sequence[PageRecord], layout: Optional[LayoutConfig] = None) -> DocumentStats:
        heights: List[float] = [r.content_box.height for r in records if not r.is_empty]
        typical = median_height(heights)
        fallback = typical is None or typical <= 0
        if fallback:
            typical = self.config.fallback_height
        padding = self.resolve_padding(typical, layout.padding if layout else 0.0)
        return DocumentStats(
            typical_content_height=typical,
            padding=padding,
            sample_size=len(heights),
            fallback=fallback,
        )

    def resolve_padding(self, typical_height: float, padding: float) -> float:
        """Apply the inches-to-points guess to ``padding``.

        Content measured in points (a tall typical height) next to a padding
        below a few units most likely means the caller gave inches. This is a
        guess about caller intent, not unit detection.
        """

        cfg = self.config
        if (
            cfg.unit_heuristic
            and typical_height > cfg.points_scale_height
            and 0 < padding < cfg.inch_padding_limit
        ):
            rescaled = padding * cfg.points_per_inch
            log_event(
                "padding_rescaled",
                padding=padding,
                rescaled=rescaled,
                typical_content_height=typical_height,
            )
            return rescaled
        return padding


def aggregate(
    records: Sequence[PageRecord],
    layout: Optional[LayoutConfig] = None,
    config: Optional[StatisticsConfig] = None,
) -> DocumentStats:
    return StatisticsAggregator(config).aggregate(records, layout)
