"""pdfmargins: add annotation margins to PDF pages without changing their zoom."""

from .config import (
    BatchConfig,
    CompositingConfig,
    DetectionConfig,
    EnhancerConfig,
    LayoutConfig,
    StatisticsConfig,
    load_config,
)
from .driver import BatchItemResult, MarginEnhancer, enhance, enhance_batch, enhance_document
from .errors import EnhanceError, GeometryError, InternalError, LoadError, RenderError, SaveError
from .types import Box, DocumentStats, EnhanceReport, PageRecord, TargetGeometry

__all__ = [
    "BatchConfig",
    "BatchItemResult",
    "Box",
    "CompositingConfig",
    "DetectionConfig",
    "DocumentStats",
    "EnhanceError",
    "EnhanceReport",
    "EnhancerConfig",
    "GeometryError",
    "InternalError",
    "LayoutConfig",
    "LoadError",
    "MarginEnhancer",
    "PageRecord",
    "RenderError",
    "SaveError",
    "StatisticsConfig",
    "TargetGeometry",
    "enhance",
    "enhance_batch",
    "enhance_document",
    "load_config",
]
