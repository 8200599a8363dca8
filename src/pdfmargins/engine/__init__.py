"""Document engine adapters."""

from .pymupdf_engine import DocumentEngine, DocumentHandle, PageObject

__all__ = ["DocumentEngine", "DocumentHandle", "PageObject"]
