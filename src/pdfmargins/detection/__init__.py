"""Content bounds detection strategies."""

from .bounds import (
    BoundsDetector,
    DetectedBounds,
    RasterBoundsDetector,
    VectorBoundsDetector,
    build_detector,
)

__all__ = [
    "BoundsDetector",
    "DetectedBounds",
    "RasterBoundsDetector",
    "VectorBoundsDetector",
    "build_detector",
]
