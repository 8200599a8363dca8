"""Test configuration ensuring local packages are importable."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tests.pdf_factory import build_pdf  # noqa: E402


@pytest.fixture
def three_page_pdf() -> bytes:
    """Two normal pages around one tall capture, each with a 10-unit inset rectangle."""

    return build_pdf(
        [
            (612, 800, [((10, 10, 602, 790), 0.0)]),
            (612, 3000, [((10, 10, 602, 2990), 0.0)]),
            (612, 800, [((10, 10, 602, 790), 0.0)]),
        ]
    )


@pytest.fixture
def single_page_pdf() -> bytes:
    return build_pdf([(612, 792, [((100, 200, 300, 400), 0.0)])])
