"""Document engine built on PyMuPDF.

The pipeline only talks to documents through :class:`DocumentEngine`, which
keeps PyMuPDF's coordinate conventions out of the core: every box that
crosses this boundary is in PDF user units with a bottom-left origin, the
same space the page's ``/MediaBox`` is written in.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import fitz  # type: ignore
import numpy as np

from ..errors import LoadError, RenderError, SaveError
from ..types import Box

LOGGER = logging.getLogger(__name__)

# Device trace entries that leave marks on the page. Clip operations and
# invisible (render mode 3) text are reported as well but draw nothing.
DRAWABLE_KINDS = frozenset(
    {
        "fill-path",
        "stroke-path",
        "fill-text",
        "stroke-text",
        "fill-image",
        "fill-imgmask",
        "fill-shade",
    }
)

CHANNELS = 3


@contextmanager
def unrotated(page: "fitz.Page") -> Iterator["fitz.Page"]:
    """Clear ``/Rotate`` while tracing or rendering, then put it back.

    PyMuPDF's ``transformation_matrix`` drops the MediaBox offset on rotated
    pages and ``get_pixmap`` applies the rotation itself, so both only agree
    with PDF space when the page is upright.
    """

    rotation = page.rotation
    if rotation % 360 == 0:
        yield page
        return
    page.set_rotation(0)
    try:
        yield page
    finally:
        page.set_rotation(rotation)


@dataclass(slots=True)
class PageObject:
    """One drawable object as traced by the engine."""

    kind: str
    box: Box


@dataclass(slots=True)
class DocumentHandle:
    """An open document plus per-page caches owned by one pipeline run."""

    document: "fitz.Document"
    flattened: Dict[int, List[PageObject]] = field(default_factory=dict)
    closed: bool = False


class DocumentEngine:
    """PyMuPDF-backed implementation of the document engine contract.

    MuPDF keeps process-wide state (error display, the warning buffer and the
    resource store). :meth:`start` and :meth:`stop` bracket that state with a
    reference count so it is set up once per process and torn down when the
    last user leaves.
    """

    _lock = threading.Lock()
    _users = 0

    @classmethod
    def start(cls) -> None:
        with cls._lock:
            if cls._users == 0:
                fitz.TOOLS.mupdf_display_errors(False)
                fitz.TOOLS.reset_mupdf_warnings()
                LOGGER.debug("PyMuPDF %s initialised", fitz.VersionBind)
            cls._users += 1

    @classmethod
    def stop(cls) -> None:
        with cls._lock:
            if cls._users == 0:
                return
            cls._users -= 1
            if cls._users == 0:
                fitz.TOOLS.store_shrink(100)
                LOGGER.debug("PyMuPDF store released")

    @classmethod
    def active(cls) -> bool:
        return cls._users > 0

    # Document lifecycle -------------------------------------------------
    def load(self, data: bytes) -> DocumentHandle:
        if not data:
            raise LoadError("document is empty")
        try:
            document = fitz.open(stream=bytes(data), filetype="pdf")
        except Exception as exc:
            raise LoadError(f"could not open document: {exc}") from exc
        if not document.is_pdf or document.needs_pass:
            document.close()
            raise LoadError("document is not an unencrypted PDF")
        if document.page_count == 0:
            document.close()
            raise LoadError("document has no pages")
        warnings = fitz.TOOLS.mupdf_warnings()
        if warnings:
            LOGGER.debug("MuPDF warnings while loading: %s", warnings)
        return DocumentHandle(document=document)

    def save(self, handle: DocumentHandle) -> bytes:
        try:
            return handle.document.tobytes(garbage=1)
        except Exception as exc:
            raise SaveError(f"could not serialise document: {exc}") from exc

    def close(self, handle: DocumentHandle) -> None:
        if handle.closed:
            return
        handle.flattened.clear()
        handle.document.close()
        handle.closed = True

    # Page geometry ------------------------------------------------------
    def page_count(self, handle: DocumentHandle) -> int:
        return handle.document.page_count

    def get_page_box(self, handle: DocumentHandle, index: int) -> Box:
        """Return the page's MediaBox, or a box derived from the page size."""

        try:
            page = handle.document[index]
            box = Box.from_tuple(page.mediabox).normalized()
            if box.is_degenerate():
                rect = page.rect
                box = Box(0.0, 0.0, float(rect.width), float(rect.height))
        except Exception as exc:
            raise RenderError(f"could not read the box of page {index}: {exc}") from exc
        return box

    def set_page_box(self, handle: DocumentHandle, index: int, box: Box) -> None:
        """Write ``box`` as both MediaBox and CropBox; viewers display the CropBox."""

        page = handle.document[index]
        value = "[" + " ".join(format(v, ".4f") for v in box.as_tuple()) + "]"
        handle.document.xref_set_key(page.xref, "MediaBox", value)
        handle.document.xref_set_key(page.xref, "CropBox", value)

    # Object enumeration ---------------------------------------------------
    def flatten_content_groups(self, handle: DocumentHandle, index: int) -> List[PageObject]:
        """Trace the page through a bbox device and cache the flat object list.

        The device walks every Form XObject with its effective matrix, so a
        reusable content group shows up as the objects it actually draws, not
        as its declared ``/BBox``.
        """

        cached = handle.flattened.get(index)
        if cached is not None:
            return cached
        try:
            page = handle.document[index]
            with unrotated(page):
                to_pdf = ~page.transformation_matrix
                entries = page.get_bboxlog()
        except Exception as exc:
            raise RenderError(f"could not trace page {index}: {exc}") from exc

        objects: List[PageObject] = []
        for entry in entries:
            kind, rect = entry[0], fitz.Rect(entry[1])
            if kind not in DRAWABLE_KINDS or rect.is_empty or rect.is_infinite:
                continue
            mapped = rect * to_pdf
            box = Box(mapped.x0, mapped.y0, mapped.x1, mapped.y1).normalized()
            if box.is_finite():
                objects.append(PageObject(kind=kind, box=box))
        handle.flattened[index] = objects
        return objects

    def enumerate_page_objects(self, handle: DocumentHandle, index: int) -> List[PageObject]:
        return list(self.flatten_content_groups(handle, index))

    # Rasterisation --------------------------------------------------------
    def render_page(
        self,
        handle: DocumentHandle,
        index: int,
        px_width: int,
        px_height: int,
        out: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Render the page box into an RGB array of ``(px_height, px_width, 3)``.

        Row 0 is the top edge of the page box. The buffer is filled white
        first so transparent areas and anything outside the visible CropBox
        read as background. When ``out`` is given the pixels are written into
        its top-left corner and a view of that region is returned.
        """

        if px_width <= 0 or px_height <= 0:
            raise RenderError(f"invalid render size {px_width}x{px_height} for page {index}")
        if out is not None:
            if out.shape[0] < px_height or out.shape[1] < px_width or out.shape[2] != CHANNELS:
                raise RenderError("render buffer is smaller than the requested page size")
            buffer = out[:px_height, :px_width]
        else:
            buffer = np.empty((px_height, px_width, CHANNELS), dtype=np.uint8)
        buffer.fill(255)

        box = self.get_page_box(handle, index)
        try:
            page = handle.document[index]
            scale_x = px_width / box.width
            scale_y = px_height / box.height
            with unrotated(page):
                # display space -> PDF space -> page-box origin at top-left -> pixels
                matrix = (
                    ~page.transformation_matrix
                    * fitz.Matrix(1, 0, 0, 1, -box.left, -box.top)
                    * fitz.Matrix(scale_x, 0, 0, -scale_y, 0, 0)
                )
                pix = page.get_pixmap(matrix=matrix, colorspace=fitz.csRGB, alpha=False)
        except Exception as exc:
            raise RenderError(f"could not render page {index}: {exc}") from exc

        samples = np.frombuffer(pix.samples, dtype=np.uint8).reshape(pix.height, pix.stride)
        samples = samples[:, : pix.width * pix.n].reshape(pix.height, pix.width, pix.n)
        x0, y0 = max(pix.x, 0), max(pix.y, 0)
        x1, y1 = min(pix.x + pix.width, px_width), min(pix.y + pix.height, px_height)
        if x1 > x0 and y1 > y0:
            buffer[y0:y1, x0:x1] = samples[y0 - pix.y : y1 - pix.y, x0 - pix.x : x1 - pix.x, :CHANNELS]
        return buffer
