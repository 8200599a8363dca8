"""High-level orchestration for the margin pipeline.

A document moves through ``DISCOVERING -> AGGREGATING -> COMPOSITING ->
PERSISTED``. Bounds are detected for every page before the statistics are
computed, and the statistics are final before any page box is rewritten, so
the document baseline is the same for every page.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from .config import EnhancerConfig, LayoutConfig
from .detection import BoundsDetector, build_detector
from .engine import DocumentEngine, DocumentHandle
from .errors import EnhanceError, GeometryError, InternalError, RenderError
from .layout.compositor import MarginCompositor
from .layout.planner import plan
from .layout.statistics import StatisticsAggregator
from .telemetry import log_event
from .types import Box, DocumentStats, EnhanceReport, PageRecord

LOGGER = logging.getLogger(__name__)

# MuPDF keeps process-wide state; one document is processed at a time per process.
_PIPELINE_LOCK = threading.RLock()

ConfigLike = Union[EnhancerConfig, LayoutConfig, None]


class Stage(str, Enum):
    DISCOVERING = "discovering"
    AGGREGATING = "aggregating"
    COMPOSITING = "compositing"
    PERSISTED = "persisted"


STAGE_ORDER = (Stage.DISCOVERING, Stage.AGGREGATING, Stage.COMPOSITING, Stage.PERSISTED)


def _as_enhancer_config(config: ConfigLike) -> EnhancerConfig:
    if config is None:
        return EnhancerConfig()
    if isinstance(config, LayoutConfig):
        return EnhancerConfig(layout=config)
    return config


class DocumentRun:
    """State machine for one open document."""

    def __init__(self, engine: DocumentEngine, handle: DocumentHandle, config: EnhancerConfig):
        self.engine = engine
        self.handle = handle
        self.config = config
        self.stage: Optional[Stage] = None
        self.records: List[PageRecord] = []
        self.stats: Optional[DocumentStats] = None
        self.report = EnhanceReport(page_count=engine.page_count(handle))

    def advance(self, stage: Stage) -> None:
        position = -1 if self.stage is None else STAGE_ORDER.index(self.stage)
        if position + 1 >= len(STAGE_ORDER) or STAGE_ORDER[position + 1] is not stage:
            current = self.stage.value if self.stage else "start"
            raise InternalError(f"illegal stage transition {current} -> {stage.value}")
        self.stage = stage
        LOGGER.debug("Document run entered stage %s", stage.value)

    def discover(self, detector: BoundsDetector) -> List[PageRecord]:
        self.advance(Stage.DISCOVERING)
        records: List[PageRecord] = []
        for index in range(self.report.page_count):
            records.append(self._discover_page(detector, index))
        self.records = records
        self.report.records = records
        return records

    def _discover_page(self, detector: BoundsDetector, index: int) -> PageRecord:
        try:
            page_box = self.engine.get_page_box(self.handle, index)
        except RenderError as exc:
            self._degraded(index, "page_box_unavailable", exc)
            return PageRecord(
                index=index,
                original_box=Box.point(0.0, 0.0),
                content_box=Box.point(0.0, 0.0),
                is_empty=True,
                strategy=detector.name,
                note="page_box_unavailable",
            )
        try:
            bounds = detector.detect(self.handle, index, page_box)
        except RenderError as exc:
            self._degraded(index, "render_failed", exc)
            return PageRecord(
                index=index,
                original_box=page_box,
                content_box=page_box.center_point() if page_box.is_finite() else Box.point(0.0, 0.0),
                is_empty=True,
                strategy=detector.name,
                note="render_failed",
            )
        return PageRecord(
            index=index,
            original_box=page_box,
            content_box=bounds.box,
            is_empty=bounds.is_empty,
            strategy=detector.name,
        )

    def _degraded(self, index: int, reason: str, exc: Exception) -> None:
        self.report.degraded_pages.append(index)
        log_event("page_degraded", level=logging.WARNING, page=index, reason=reason, detail=str(exc))

    def aggregate(self) -> DocumentStats:
        self.advance(Stage.AGGREGATING)
        aggregator = StatisticsAggregator(self.config.statistics)
        self.stats = aggregator.aggregate(self.records, self.config.layout)
        self.report.stats = self.stats
        log_event(
            "stats_computed",
            typical_content_height=round(self.stats.typical_content_height, 3),
            padding=self.stats.padding,
            sample_size=self.stats.sample_size,
            fallback=self.stats.fallback,
        )
        return self.stats

    def composite(self) -> None:
        self.advance(Stage.COMPOSITING)
        if self.stats is None:
            raise InternalError("compositing started without document statistics")
        layout = self.config.layout
        compositor = MarginCompositor(layout, self.config.compositing)
        for record in self.records:
            if record.note == "page_box_unavailable":
                self.report.rejected_pages.append(record.index)
                continue
            geometry = plan(self.stats, layout, record)
            try:
                box = compositor.compose(record, geometry, record.index, self.stats.padding)
            except GeometryError as exc:
                self.report.rejected_pages.append(record.index)
                log_event("geometry_rejected", level=logging.WARNING, page=record.index, detail=str(exc))
                continue
            self.engine.set_page_box(self.handle, record.index, box)
            self.report.boxes[record.index] = box

    def persist(self) -> bytes:
        self.advance(Stage.PERSISTED)
        return self.engine.save(self.handle)


class MarginEnhancer:
    """Owns the engine lifecycle and runs documents through the pipeline."""

    def __init__(self, config: ConfigLike = None, engine: Optional[DocumentEngine] = None):
        self.config = _as_enhancer_config(config)
        self.config.validate()
        self.engine = engine or DocumentEngine()
        self._started = False

    def __enter__(self) -> "MarginEnhancer":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if not self._started:
            self.engine.start()
            self._started = True

    def close(self) -> None:
        if self._started:
            self.engine.stop()
            self._started = False

    def run(self, data: bytes) -> bytes:
        return self.run_with_report(data)[0]

    def run_with_report(self, data: bytes) -> Tuple[bytes, EnhanceReport]:
        """Enhance one document and return the new bytes with a run report."""

        with _PIPELINE_LOCK:
            if not self._started:
                with self:
                    return self._run(data)
            return self._run(data)

    def _run(self, data: bytes) -> Tuple[bytes, EnhanceReport]:
        start = time.perf_counter()
        handle = self.engine.load(data)
        try:
            run = DocumentRun(self.engine, handle, self.config)
            log_event(
                "enhance_started",
                pages=run.report.page_count,
                strategy=self.config.detection.strategy,
                margin_side=self.config.layout.margin_side,
            )
            detector = build_detector(self.engine, self.config.detection)
            with detector.session():
                run.discover(detector)
            run.aggregate()
            run.composite()
            output = run.persist()
        except EnhanceError:
            raise
        except Exception as exc:
            LOGGER.exception("Unexpected failure while enhancing document")
            raise InternalError(f"unexpected failure: {exc}") from exc
        finally:
            self.engine.close(handle)

        report = run.report
        report.elapsed_s = time.perf_counter() - start
        log_event(
            "enhance_completed",
            pages=report.page_count,
            degraded=report.degraded_pages,
            rejected=report.rejected_pages,
            duration_s=round(report.elapsed_s, 3),
        )
        return output, report


def enhance_document(document_bytes: bytes, config: ConfigLike = None) -> bytes:
    """Synchronous form of :func:`enhance`."""

    with _PIPELINE_LOCK, MarginEnhancer(config) as enhancer:
        return enhancer.run(document_bytes)


async def enhance(document_bytes: bytes, config: ConfigLike = None) -> bytes:
    """Return the enhanced document, or raise a single :class:`EnhanceError`.

    The work runs in a worker thread and holds the process-wide pipeline
    lock, so concurrent calls are serialised; wrap the call in
    ``asyncio.wait_for`` to bound it.
    """

    return await asyncio.to_thread(enhance_document, document_bytes, config)


@dataclass(slots=True)
class BatchItemResult:
    """Outcome for one document of a batch run."""

    name: str
    data: Optional[bytes] = None
    error: Optional[EnhanceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _enhance_item(name: str, data: bytes, config: EnhancerConfig) -> BatchItemResult:
    try:
        return BatchItemResult(name=name, data=enhance_document(data, config))
    except EnhanceError as exc:
        LOGGER.warning("Failed to enhance %s: %s", name, exc)
        return BatchItemResult(name=name, error=exc)


def enhance_batch(
    items: Sequence[Tuple[str, bytes]],
    config: ConfigLike = None,
    *,
    max_workers: Optional[int] = None,
) -> List[BatchItemResult]:
    """Enhance independent documents, in parallel across worker processes.

    MuPDF is not safe to drive from several threads, so each document runs
    in its own process; pages of one document are never split across workers.
    Results keep the input order.
    """

    if not items:
        return []
    cfg = _as_enhancer_config(config)
    workers = min(max_workers or cfg.batch.max_workers, len(items))
    if workers <= 1:
        return [_enhance_item(name, data, cfg) for name, data in items]
    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_enhance_item, name, data, cfg) for name, data in items]
        return [future.result() for future in futures]
