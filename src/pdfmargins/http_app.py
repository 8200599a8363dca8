"""FastAPI wrapper around :func:`pdfmargins.driver.enhance`."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response

from .config import load_config
from .driver import enhance
from .errors import EnhanceError, LoadError

app = FastAPI(title="PDF Margin Enhancer")


def _overrides(
    side: Optional[str],
    target_width: Optional[float],
    target_height: Optional[float],
    padding: Optional[float],
    strategy: Optional[str],
) -> Dict[str, Any]:
    layout = {
        key: value
        for key, value in (
            ("margin_side", side),
            ("target_width", target_width),
            ("target_height", target_height),
            ("padding", padding),
        )
        if value is not None
    }
    overrides: Dict[str, Any] = {"layout": layout}
    if strategy is not None:
        overrides["detection"] = {"strategy": strategy}
    return overrides


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/enhance")
async def enhance_endpoint(
    pdf: UploadFile = File(...),
    side: Optional[str] = Form(None),
    target_width: Optional[float] = Form(None),
    target_height: Optional[float] = Form(None),
    padding: Optional[float] = Form(None),
    strategy: Optional[str] = Form(None),
) -> Response:
    try:
        config = load_config(overrides=_overrides(side, target_width, target_height, padding, strategy))
    except ValueError as exc:
        return JSONResponse({"error": "config", "detail": str(exc)}, status_code=422)
    data = await pdf.read()
    try:
        result = await enhance(data, config)
    except LoadError as exc:
        return JSONResponse(exc.to_dict(), status_code=400)
    except EnhanceError as exc:
        return JSONResponse(exc.to_dict(), status_code=500)
    filename = f"enhanced_{pdf.filename or 'document.pdf'}"
    return Response(
        content=result,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
