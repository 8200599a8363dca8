"""Geometry and record types shared by the margin pipeline."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Box:
    """Axis-aligned rectangle in PDF user units (origin bottom-left)."""

    left: float
    bottom: float
    right: float
    top: float

    @classmethod
    def from_tuple(cls, values: Iterable[float]) -> "Box":
        left, bottom, right, top = (float(v) for v in values)
        return cls(left, bottom, right, top)

    @classmethod
    def point(cls, x: float, y: float) -> "Box":
        return cls(x, y, x, y)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.top - self.bottom

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) / 2.0, (self.bottom + self.top) / 2.0

    def normalized(self) -> "Box":
        return Box(
            min(self.left, self.right),
            min(self.bottom, self.top),
            max(self.left, self.right),
            max(self.bottom, self.top),
        )

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.as_tuple())

    def is_degenerate(self) -> bool:
        """True when the box cannot describe a page (non-finite, inverted or zero area)."""

        return not self.is_finite() or self.width <= 0 or self.height <= 0

    def center_point(self) -> "Box":
        x, y = self.center
        return Box.point(x, y)

    def union(self, other: "Box") -> "Box":
        return Box(
            min(self.left, other.left),
            min(self.bottom, other.bottom),
            max(self.right, other.right),
            max(self.top, other.top),
        )

    def intersect(self, other: "Box") -> Optional["Box"]:
        box = Box(
            max(self.left, other.left),
            max(self.bottom, other.bottom),
            min(self.right, other.right),
            min(self.top, other.top),
        )
        if box.width < 0 or box.height < 0:
            return None
        return box

    def hugs(self, other: "Box", tolerance: float) -> bool:
        """Whether every edge lies within ``tolerance`` of the matching edge of ``other``."""

        return (
            abs(self.left - other.left) <= tolerance
            and abs(self.bottom - other.bottom) <= tolerance
            and abs(self.right - other.right) <= tolerance
            and abs(self.top - other.top) <= tolerance
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.left, self.bottom, self.right, self.top)


def union_all(boxes: Iterable[Box]) -> Optional[Box]:
    result: Optional[Box] = None
    for box in boxes:
        result = box if result is None else result.union(box)
    return result


@dataclass(frozen=True, slots=True)
class PageRecord:
    """Bounds discovered for one page; immutable once the discovery pass ends."""

    index: int
    original_box: Box
    content_box: Box
    is_empty: bool
    strategy: str = "raster"
    note: Optional[str] = None

    @property
    def content_width(self) -> float:
        return 0.0 if self.is_empty else self.content_box.width

    @property
    def content_height(self) -> float:
        return 0.0 if self.is_empty else self.content_box.height


@dataclass(frozen=True, slots=True)
class DocumentStats:
    """Document-wide baseline, written once between the two passes."""

    typical_content_height: float
    padding: float = 0.0
    sample_size: int = 0
    fallback: bool = False


@dataclass(frozen=True, slots=True)
class TargetGeometry:
    width: float
    height: float

    @property
    def ratio(self) -> float:
        return self.width / self.height if self.height else 0.0


@dataclass(slots=True)
class EnhanceReport:
    """Summary of one document run, used for logging and the CLI ``--json`` view."""

    page_count: int
    stats: Optional[DocumentStats] = None
    records: List[PageRecord] = field(default_factory=list)
    boxes: Dict[int, Box] = field(default_factory=dict)
    rejected_pages: List[int] = field(default_factory=list)
    degraded_pages: List[int] = field(default_factory=list)
    elapsed_s: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "page_count": self.page_count,
            "stats": asdict(self.stats) if self.stats else None,
            "pages": [
                {
                    "index": record.index,
                    "original_box": list(record.original_box.as_tuple()),
                    "content_box": list(record.content_box.as_tuple()),
                    "is_empty": record.is_empty,
                    "new_box": list(self.boxes[record.index].as_tuple()) if record.index in self.boxes else None,
                }
                for record in self.records
            ],
            "rejected_pages": list(self.rejected_pages),
            "degraded_pages": list(self.degraded_pages),
            "elapsed_s": round(self.elapsed_s, 3),
        }
