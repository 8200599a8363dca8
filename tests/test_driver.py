from __future__ import annotations

import asyncio
import json
import logging
import threading
import time

import fitz  # type: ignore
import pytest

from pdfmargins.config import DetectionConfig, EnhancerConfig, LayoutConfig
from pdfmargins.driver import DocumentRun, MarginEnhancer, Stage, enhance, enhance_batch, enhance_document
from pdfmargins.engine import DocumentEngine
from pdfmargins.errors import InternalError, LoadError, RenderError, SaveError
from tests.pdf_factory import rotate_pages


def _vector_config(**layout) -> EnhancerConfig:
    return EnhancerConfig(
        detection=DetectionConfig(strategy="vector"),
        layout=LayoutConfig(**layout),
    )


def _page_sizes(data: bytes):
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        return [(page.mediabox.width, page.mediabox.height) for page in doc]
    finally:
        doc.close()


def test_page_count_is_preserved(three_page_pdf) -> None:
    output = enhance_document(three_page_pdf)
    assert len(_page_sizes(output)) == 3


def test_worked_example_page_sizes(three_page_pdf) -> None:
    config = _vector_config(target_width=1, target_height=1, padding=0)
    output = enhance_document(three_page_pdf, config)
    sizes = _page_sizes(output)
    assert sizes[0] == pytest.approx((780, 780), abs=0.01)
    assert sizes[1] == pytest.approx((2980, 2980), abs=0.01)
    assert sizes[2] == pytest.approx((780, 780), abs=0.01)


def test_raster_strategy_keeps_uniform_zoom(three_page_pdf) -> None:
    output = enhance_document(three_page_pdf, LayoutConfig(target_width=1, target_height=1))
    sizes = _page_sizes(output)
    # Normal pages share one size; the tall capture grows past it.
    assert sizes[0] == pytest.approx(sizes[2], abs=0.01)
    assert sizes[1][1] > sizes[0][1]
    assert sizes[0][0] == pytest.approx(sizes[0][1], abs=0.01)


def test_report_describes_every_page(three_page_pdf) -> None:
    with MarginEnhancer(_vector_config(target_width=1, target_height=1)) as enhancer:
        _, report = enhancer.run_with_report(three_page_pdf)
    assert report.page_count == 3
    assert sorted(report.boxes) == [0, 1, 2]
    assert report.stats is not None and report.stats.typical_content_height == pytest.approx(780)
    payload = report.to_dict()
    assert json.loads(json.dumps(payload))["pages"][1]["is_empty"] is False


@pytest.mark.parametrize("data", [b"not a pdf", b""])
def test_malformed_input_raises_load_error(data) -> None:
    with pytest.raises(LoadError) as excinfo:
        enhance_document(data)
    assert excinfo.value.to_dict()["error"] == "load"


def test_save_failure_raises_save_error(single_page_pdf) -> None:
    class UnsavableEngine(DocumentEngine):
        def save(self, handle):
            raise SaveError("disk full")

    with pytest.raises(SaveError):
        MarginEnhancer(engine=UnsavableEngine()).run(single_page_pdf)


def test_render_failure_degrades_single_page(three_page_pdf, caplog) -> None:
    class FlakyEngine(DocumentEngine):
        def render_page(self, handle, index, *args, **kwargs):
            if index == 1:
                raise RenderError("corrupt content stream")
            return super().render_page(handle, index, *args, **kwargs)

    caplog.set_level(logging.WARNING, logger="pdfmargins.events")
    with MarginEnhancer(LayoutConfig(target_width=1, target_height=1), engine=FlakyEngine()) as enhancer:
        output, report = enhancer.run_with_report(three_page_pdf)

    assert report.degraded_pages == [1]
    assert report.records[1].is_empty is True
    assert report.records[1].note == "render_failed"
    assert len(_page_sizes(output)) == 3
    assert any("page_degraded" in record.getMessage() for record in caplog.records)


def test_unexpected_failure_becomes_internal_error(single_page_pdf) -> None:
    class ExplodingEngine(DocumentEngine):
        def set_page_box(self, handle, index, box):
            raise RuntimeError("unexpected")

    with pytest.raises(InternalError) as excinfo:
        MarginEnhancer(engine=ExplodingEngine()).run(single_page_pdf)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_stages_cannot_be_skipped(single_page_pdf) -> None:
    engine = DocumentEngine()
    engine.start()
    handle = engine.load(single_page_pdf)
    try:
        run = DocumentRun(engine, handle, EnhancerConfig())
        with pytest.raises(InternalError):
            run.advance(Stage.AGGREGATING)
        run.advance(Stage.DISCOVERING)
        with pytest.raises(InternalError):
            run.advance(Stage.COMPOSITING)
    finally:
        engine.close(handle)
        engine.stop()


def test_engine_is_released_after_run(single_page_pdf) -> None:
    enhance_document(single_page_pdf)
    assert DocumentEngine.active() is False


def test_async_enhance_accepts_layout_config(single_page_pdf) -> None:
    output = asyncio.run(enhance(single_page_pdf, LayoutConfig(target_width=4, target_height=3)))
    width, height = _page_sizes(output)[0]
    assert width / height == pytest.approx(4 / 3, rel=1e-3)


@pytest.mark.parametrize("workers", [1, 2])
def test_batch_keeps_order_and_isolates_failures(single_page_pdf, three_page_pdf, workers) -> None:
    items = [("one.pdf", single_page_pdf), ("junk.pdf", b"junk"), ("three.pdf", three_page_pdf)]
    results = enhance_batch(items, max_workers=workers)
    assert [r.name for r in results] == ["one.pdf", "junk.pdf", "three.pdf"]
    assert results[0].ok and results[2].ok
    assert isinstance(results[1].error, LoadError)
    assert len(_page_sizes(results[2].data)) == 3


@pytest.mark.parametrize("rotation", [90, 270])
def test_rotated_page_box_encloses_content(single_page_pdf, rotation) -> None:
    output = enhance_document(rotate_pages(single_page_pdf, rotation), LayoutConfig(padding=10))
    doc = fitz.open(stream=output, filetype="pdf")
    try:
        page = doc[0]
        box = page.mediabox
        assert page.rotation == rotation
        assert box.x0 <= 100 - 10 + 2 and box.x1 >= 300 + 10 - 2
        assert box.y0 <= 200 - 10 + 2 and box.y1 >= 400 + 10 - 2
    finally:
        doc.close()


def test_concurrent_enhance_calls_run_one_document_at_a_time(three_page_pdf, monkeypatch) -> None:
    active = 0
    peak = 0
    guard = threading.Lock()
    original = DocumentEngine.render_page

    def tracking_render(self, *args, **kwargs):
        nonlocal active, peak
        with guard:
            active += 1
            peak = max(peak, active)
        try:
            time.sleep(0.005)
            return original(self, *args, **kwargs)
        finally:
            with guard:
                active -= 1

    monkeypatch.setattr(DocumentEngine, "render_page", tracking_render)

    async def run_all():
        return await asyncio.gather(*(enhance(three_page_pdf) for _ in range(6)))

    outputs = asyncio.run(run_all())
    assert len(outputs) == 6
    assert peak == 1


def test_compositing_without_statistics_is_internal_error(single_page_pdf) -> None:
    engine = DocumentEngine()
    engine.start()
    handle = engine.load(single_page_pdf)
    try:
        run = DocumentRun(engine, handle, EnhancerConfig())
        run.advance(Stage.DISCOVERING)
        run.advance(Stage.AGGREGATING)
        with pytest.raises(InternalError):
            run.composite()
    finally:
        engine.close(handle)
        engine.stop()
