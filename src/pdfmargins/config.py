"""Configuration primitives for the margin pipeline."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

import yaml

DEFAULT_TARGET_DIMENSION = 1000.0
MARGIN_SIDES = ("right", "left", "alternating")
STRATEGIES = ("raster", "vector")


def _coerce_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _merge_dict(base: MutableMapping[str, Any], updates: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            _merge_dict(base[key], value)  # type: ignore[index]
        else:
            base[key] = value
    return base


@dataclass(slots=True)
class DetectionConfig:
    """Content-bounds detection settings."""

    strategy: str = "raster"
    max_render_px: int = 1000
    luminance_threshold: int = 250
    background_tolerance: float = 5.0

    def validate(self) -> None:
        if self.strategy not in STRATEGIES:
            raise ValueError(f"detection.strategy must be one of {', '.join(STRATEGIES)}")
        if self.max_render_px <= 0:
            raise ValueError("detection.max_render_px must be positive")
        if not (1 <= self.luminance_threshold <= 255):
            raise ValueError("detection.luminance_threshold must be between 1 and 255")
        if self.background_tolerance < 0:
            raise ValueError("detection.background_tolerance must be non-negative")


@dataclass(slots=True)
class StatisticsConfig:
    """Baseline statistics settings."""

    fallback_height: float = 500.0
    unit_heuristic: bool = True
    points_scale_height: float = 100.0
    inch_padding_limit: float = 5.0
    points_per_inch: float = 72.0

    def validate(self) -> None:
        if not math.isfinite(self.fallback_height) or self.fallback_height <= 0:
            raise ValueError("statistics.fallback_height must be positive")
        if self.inch_padding_limit < 0 or self.points_scale_height < 0:
            raise ValueError("statistics thresholds must be non-negative")


@dataclass(slots=True)
class LayoutConfig:
    """Target page shape and margin placement.

    Numeric values are sanitised rather than rejected: a missing or broken
    target dimension falls back to a square default so no NaN or infinity can
    reach the written page boxes.
    """

    target_width: float = DEFAULT_TARGET_DIMENSION
    target_height: float = DEFAULT_TARGET_DIMENSION
    padding: float = 0.0
    margin_side: str = "right"

    def __post_init__(self) -> None:
        self.sanitize()

    def sanitize(self) -> None:
        width = _coerce_float(self.target_width, DEFAULT_TARGET_DIMENSION)
        height = _coerce_float(self.target_height, DEFAULT_TARGET_DIMENSION)
        padding = _coerce_float(self.padding, 0.0)
        self.target_width = width if math.isfinite(width) and width > 0 else DEFAULT_TARGET_DIMENSION
        self.target_height = height if math.isfinite(height) and height > 0 else DEFAULT_TARGET_DIMENSION
        self.padding = padding if math.isfinite(padding) and padding > 0 else 0.0
        self.margin_side = str(self.margin_side).strip().lower()

    @property
    def target_ratio(self) -> float:
        return self.target_width / self.target_height

    def validate(self) -> None:
        if self.margin_side not in MARGIN_SIDES:
            raise ValueError(f"layout.margin_side must be one of {', '.join(MARGIN_SIDES)}")


@dataclass(slots=True)
class CompositingConfig:
    """Page box placement settings."""

    bezel_fraction: float = 0.05
    max_coordinate: float = 1e7

    def validate(self) -> None:
        if not (0.0 <= self.bezel_fraction < 0.5):
            raise ValueError("compositing.bezel_fraction must be within [0, 0.5)")
        if self.max_coordinate <= 0:
            raise ValueError("compositing.max_coordinate must be positive")


@dataclass(slots=True)
class BatchConfig:
    """Worker pool used when several documents are processed together."""

    max_workers: int = 2

    def validate(self) -> None:
        if self.max_workers <= 0:
            raise ValueError("batch.max_workers must be positive")


@dataclass(slots=True)
class EnhancerConfig:
    """Top-level configuration object."""

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    statistics: StatisticsConfig = field(default_factory=StatisticsConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    compositing: CompositingConfig = field(default_factory=CompositingConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EnhancerConfig":
        """Build an :class:`EnhancerConfig` from a nested mapping, ignoring unknown keys."""

        def build(name: str, typ: Any) -> Any:
            section = data.get(name) or {}
            if not isinstance(section, Mapping):
                raise ValueError(f"Configuration section '{name}' must be a mapping")
            known = {f.name for f in fields(typ)}
            return typ(**{k: v for k, v in section.items() if k in known})

        config = cls(
            detection=build("detection", DetectionConfig),
            statistics=build("statistics", StatisticsConfig),
            layout=build("layout", LayoutConfig),
            compositing=build("compositing", CompositingConfig),
            batch=build("batch", BatchConfig),
        )
        config.validate()
        return config

    def validate(self) -> None:
        self.detection.validate()
        self.statistics.validate()
        self.layout.validate()
        self.compositing.validate()
        self.batch.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_config_path() -> Optional[Path]:
    base = Path(__file__).resolve()
    for candidate in (
        base.parent.parent.parent / "configs" / "enhancer.yaml",
        base.parent.parent / "configs" / "enhancer.yaml",
    ):
        if candidate.exists():
            return candidate
    return None


def load_config(
    path: Optional[Path | str] = None,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
) -> EnhancerConfig:
    """Load configuration from YAML, then apply ``overrides`` on top.

    Without an explicit path the project's ``configs/enhancer.yaml`` is used
    when it exists; otherwise the built-in defaults apply.
    """

    payload: Dict[str, Any] = EnhancerConfig().to_dict()
    if path is None:
        path = default_config_path()
    elif not Path(path).exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    if path is not None:
        with Path(path).open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration YAML must produce a mapping")
        _merge_dict(payload, data)
    if overrides:
        _merge_dict(payload, overrides)
    return EnhancerConfig.from_dict(payload)
