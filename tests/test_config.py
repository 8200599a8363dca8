from __future__ import annotations

import math
from pathlib import Path

import pytest

from pdfmargins.config import EnhancerConfig, LayoutConfig, default_config_path, load_config


def test_default_config_matches_shipped_yaml() -> None:
    path = default_config_path()
    assert path is not None and path.name == "enhancer.yaml"
    cfg = load_config()
    assert cfg.detection.strategy == "raster"
    assert cfg.detection.max_render_px == 1000
    assert cfg.statistics.fallback_height == 500
    assert cfg.layout.target_ratio == 1.0
    assert cfg.compositing.bezel_fraction == pytest.approx(0.05)


def test_yaml_then_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "enhancer.yaml"
    config_path.write_text(
        """
layout:
  target_width: 3
  target_height: 4
  margin_side: alternating
detection:
  strategy: vector
unknown_section:
  ignored: true
""".strip(),
        encoding="utf-8",
    )

    cfg = load_config(config_path, overrides={"layout": {"padding": 12}})
    assert cfg.layout.target_ratio == pytest.approx(0.75)
    assert cfg.layout.margin_side == "alternating"
    assert cfg.layout.padding == 12
    assert cfg.detection.strategy == "vector"
    # Untouched sections keep their defaults.
    assert cfg.batch.max_workers == 2


def test_missing_explicit_path_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_non_mapping_yaml_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "list.yaml"
    config_path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(config_path)


@pytest.mark.parametrize(
    "overrides",
    [
        {"layout": {"margin_side": "top"}},
        {"detection": {"strategy": "ocr"}},
        {"detection": {"luminance_threshold": 0}},
        {"compositing": {"bezel_fraction": 0.6}},
        {"batch": {"max_workers": 0}},
    ],
)
def test_invalid_values_rejected(overrides) -> None:
    with pytest.raises(ValueError):
        load_config(overrides=overrides)


def test_layout_values_are_sanitized() -> None:
    layout = LayoutConfig(target_width=math.inf, target_height=0, padding=-3, margin_side=" Left ")
    assert layout.target_width == 1000.0
    assert layout.target_height == 1000.0
    assert layout.padding == 0.0
    assert layout.margin_side == "left"


def test_from_dict_round_trips_sections() -> None:
    cfg = EnhancerConfig.from_dict({"layout": {"target_width": 16, "target_height": 9}})
    data = cfg.to_dict()
    assert data["layout"]["target_width"] == 16.0
    assert EnhancerConfig.from_dict(data) == cfg
