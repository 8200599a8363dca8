"""Error taxonomy for the margin pipeline.

Every error carries the pipeline ``stage`` it originated from so callers can
tell a malformed upload apart from a failed save. The stage is a class
attribute, which keeps the exceptions picklable for batch workers.
"""

from __future__ import annotations


class EnhanceError(Exception):
    """Base class for structured pipeline failures."""

    stage = "internal"

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def to_dict(self) -> dict:
        return {"error": self.stage, "detail": self.message}


class LoadError(EnhanceError):
    """Input bytes are not a well-formed document."""

    stage = "load"


class RenderError(EnhanceError):
    """Inspecting one page failed; the page is treated as empty."""

    stage = "render"


class GeometryError(EnhanceError):
    """A computed page box is non-finite or out of bounds; the original box is kept."""

    stage = "geometry"


class SaveError(EnhanceError):
    """Serialising the updated document failed."""

    stage = "save"


class InternalError(EnhanceError):
    """Unexpected failure inside the pipeline."""

    stage = "internal"
