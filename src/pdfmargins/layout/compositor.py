"""Map a page's target geometry onto a new page box."""

from __future__ import annotations

import math
from typing import Optional

from ..config import CompositingConfig, LayoutConfig
from ..errors import GeometryError
from ..types import Box, PageRecord, TargetGeometry


def margin_on_right(side: str, page_index: int) -> bool:
    """Alternating margins follow recto/verso: right on even indices, left on odd."""

    if side == "alternating":
        return page_index % 2 == 0
    return side != "left"


def relative_position(value: float, low: float, high: float) -> float:
    span = high - low
    if not math.isfinite(span) or span <= 0:
        return 0.5
    return min(1.0, max(0.0, (value - low) / span))


def bezel_inset(geometry: TargetGeometry, content_width: float, padding: float, fraction: float) -> float:
    """Extra inset proportional to the width left over beside the content."""

    surplus = geometry.width - content_width - 2 * padding
    if surplus <= 0:
        return 0.0
    return surplus * fraction


def validate_box(box: Box, limit: float) -> Box:
    if not box.is_finite():
        raise GeometryError(f"non-finite page box {box.as_tuple()}")
    if any(abs(v) >= limit for v in box.as_tuple()):
        raise GeometryError(f"page box {box.as_tuple()} exceeds {limit:g}")
    if box.width <= 0 or box.height <= 0:
        raise GeometryError(f"page box {box.as_tuple()} has no area")
    return box


class MarginCompositor:
    """Place the content inside a page of the planned size with a margin on one side."""

    def __init__(self, layout: LayoutConfig, config: Optional[CompositingConfig] = None):
        self.layout = layout
        self.config = config or CompositingConfig()

    def compose(self, record: PageRecord, geometry: TargetGeometry, page_index: int, padding: float) -> Box:
        """Return the new page box for ``record``.

        Raises :class:`GeometryError` when the result is not a usable box; the
        caller keeps the page's original box in that case.
        """

        content = record.content_box
        original = record.original_box
        bottom = self._vertical_bottom(content, original, geometry.height, padding)

        inset = padding + bezel_inset(geometry, record.content_width, padding, self.config.bezel_fraction)
        if margin_on_right(self.layout.margin_side, page_index):
            left = content.left - inset
            right = left + geometry.width
        else:
            right = content.right + inset
            left = right - geometry.width

        return validate_box(Box(left, bottom, right, bottom + geometry.height), self.config.max_coordinate)

    @staticmethod
    def _vertical_bottom(content: Box, original: Box, height: float, padding: float) -> float:
        """Bottom edge keeping the content centre at its original relative height."""

        _, center_y = content.center
        position = relative_position(center_y, original.bottom, original.top)
        bottom = center_y - position * height
        top = bottom + height
        # Shift, never resize, to keep ``padding`` clear on both edges.
        if content.top + padding > top:
            bottom += content.top + padding - top
        if content.bottom - padding < bottom:
            bottom = content.bottom - padding
        return bottom


def compose(
    record: PageRecord,
    geometry: TargetGeometry,
    layout: LayoutConfig,
    page_index: int,
    padding: float = 0.0,
    config: Optional[CompositingConfig] = None,
) -> Box:
    return MarginCompositor(layout, config).compose(record, geometry, page_index, padding)
