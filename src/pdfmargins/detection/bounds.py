"""Per-page content bounds detection.

Two interchangeable strategies implement :class:`BoundsDetector`:

* :class:`RasterBoundsDetector` renders the page into a small RGB buffer and
  scans for the first and last rows/columns holding a pixel darker than the
  luminance threshold.
* :class:`VectorBoundsDetector` unions the boxes of every drawable object the
  engine traces, after dropping objects that cover the whole page (background
  fills).

Both return a :class:`DetectedBounds`; an empty page degenerates to the
centre point of its page box instead of ``None``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np

from ..config import DetectionConfig
from ..engine import DocumentEngine, DocumentHandle
from ..types import Box, union_all

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DetectedBounds:
    box: Box
    is_empty: bool

    @classmethod
    def empty(cls, page_box: Box) -> "DetectedBounds":
        if page_box.is_finite():
            return cls(box=page_box.normalized().center_point(), is_empty=True)
        return cls(box=Box.point(0.0, 0.0), is_empty=True)


class BoundsDetector(ABC):
    """Capability interface: find the tight content box of one page."""

    name = "base"

    def __init__(self, engine: DocumentEngine, config: Optional[DetectionConfig] = None):
        self.engine = engine
        self.config = config or DetectionConfig()

    def detect(self, handle: DocumentHandle, index: int, page_box: Box) -> DetectedBounds:
        """Return the content box of page ``index``.

        Degenerate, inverted or non-finite page boxes are reported as empty.
        Engine failures surface as :class:`~pdfmargins.errors.RenderError`.
        """

        if page_box.is_degenerate():
            LOGGER.debug("Page %s has a degenerate box %s; treating as empty", index, page_box)
            return DetectedBounds.empty(page_box)
        return self._detect(handle, index, page_box)

    @contextmanager
    def session(self) -> Iterator["BoundsDetector"]:
        """Scope per-document resources; the default detector holds none."""

        yield self

    @abstractmethod
    def _detect(self, handle: DocumentHandle, index: int, page_box: Box) -> DetectedBounds:
        raise NotImplementedError


class VectorBoundsDetector(BoundsDetector):
    """Union of drawable object boxes, ignoring full-page backgrounds."""

    name = "vector"

    def _detect(self, handle: DocumentHandle, index: int, page_box: Box) -> DetectedBounds:
        self.engine.flatten_content_groups(handle, index)
        tolerance = self.config.background_tolerance
        kept = []
        for obj in self.engine.enumerate_page_objects(handle, index):
            # Marks outside the page box are never visible.
            visible = obj.box.intersect(page_box)
            if visible is None:
                continue
            if visible.hugs(page_box, tolerance):
                continue
            kept.append(visible)
        content = union_all(kept)
        if content is None:
            return DetectedBounds.empty(page_box)
        return DetectedBounds(box=content, is_empty=False)


class ScanBuffer:
    """Reusable RGB render target sized for the largest page render."""

    def __init__(self, max_px: int):
        self.max_px = max_px
        self.array: Optional[np.ndarray] = None

    def __enter__(self) -> "ScanBuffer":
        self.array = np.empty((self.max_px, self.max_px, 3), dtype=np.uint8)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.array = None


def render_size(page_box: Box, max_px: int) -> Tuple[int, int]:
    """Pixel size whose longer side is ``max_px``, aspect preserved."""

    scale = max_px / max(page_box.width, page_box.height)
    width = min(max_px, max(1, int(round(page_box.width * scale))))
    height = min(max_px, max(1, int(round(page_box.height * scale))))
    return width, height


def scan_content_edges(pixels: np.ndarray, threshold: int) -> Optional[Tuple[int, int, int, int]]:
    """Return inclusive ``(top_row, bottom_row, left_col, right_col)`` of content pixels.

    A pixel is content when any channel is below ``threshold``; values at or
    above it are background.
    """

    content = (pixels < threshold).any(axis=2)
    rows = np.flatnonzero(content.any(axis=1))
    if rows.size == 0:
        return None
    top, bottom = int(rows[0]), int(rows[-1])
    cols = np.flatnonzero(content[top : bottom + 1].any(axis=0))
    return top, bottom, int(cols[0]), int(cols[-1])


class RasterBoundsDetector(BoundsDetector):
    """Pixel scan of a downscaled render."""

    name = "raster"

    def __init__(self, engine: DocumentEngine, config: Optional[DetectionConfig] = None):
        super().__init__(engine, config)
        self._buffer: Optional[ScanBuffer] = None

    @contextmanager
    def session(self) -> Iterator["RasterBoundsDetector"]:
        with ScanBuffer(self.config.max_render_px) as buffer:
            self._buffer = buffer
            try:
                yield self
            finally:
                self._buffer = None

    def _detect(self, handle: DocumentHandle, index: int, page_box: Box) -> DetectedBounds:
        px_width, px_height = render_size(page_box, self.config.max_render_px)
        out = self._buffer.array if self._buffer is not None else None
        pixels = self.engine.render_page(handle, index, px_width, px_height, out=out)
        edges = scan_content_edges(pixels, self.config.luminance_threshold)
        if edges is None:
            return DetectedBounds.empty(page_box)

        top_row, bottom_row, left_col, right_col = edges
        scale_x = px_width / page_box.width
        scale_y = px_height / page_box.height
        box = Box(
            left=page_box.left + left_col / scale_x,
            bottom=page_box.top - (bottom_row + 1) / scale_y,
            right=page_box.left + (right_col + 1) / scale_x,
            top=page_box.top - top_row / scale_y,
        )
        return DetectedBounds(box=box, is_empty=False)


def build_detector(engine: DocumentEngine, config: DetectionConfig) -> BoundsDetector:
    if config.strategy == "vector":
        return VectorBoundsDetector(engine, config)
    return RasterBoundsDetector(engine, config)
