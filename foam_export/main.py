# foam_export/main.py
#
# Foam layout export service.
#
# Endpoints:
#   GET  /health
#   POST /step-from-layout   STEP text for a layout (the delegated-service
#                            contract: {ok, step, quoteNo, materialLegend})
#   POST /exports            SVG + DXF + STEP bundle, lock gated
#   POST /step-download      STEP attachment (whole layout or one layer)
#   POST /geometry-hash      digest of the layout geometry
#   POST /lock-check         compare a stored digest with the current layout
#
# Coordinate systems:
#   - editor / SVG: top-left origin, y down
#   - DXF: bottom-left origin, y up (flipped on export)
#   - STEP: inches in, millimetres out
#
# Lock state lives with the quote record. Requests carry it (locked +
# geometryHash); this service compares and never writes it.

import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import Response

from foam_export.config import Settings, configure_logging
from foam_export.exports import build_export_bundle, export_step
from foam_export.geometry_hash import check_export_allowed, compare_geometry, geometry_hash
from foam_export.models import ExportRequest, Layout, LockCheckRequest, StepDownloadRequest, StepRequest
from foam_export.normalize import normalize_layout
from foam_export.step import SolidMode, build_step, step_filename
from foam_export.strategies import SolidModelStrategy, strategy_from_settings

logger = logging.getLogger(__name__)

settings = Settings.from_env()

app = FastAPI(title="Foam layout export service")


def get_strategy() -> SolidModelStrategy:
    return strategy_from_settings(settings)


def _error(status: int, error: str, message: str, **extra) -> HTTPException:
    return HTTPException(status_code=status, detail={"ok": False, "error": error, "message": message, **extra})


def _canonical(raw_layout: dict, layer_hints) -> Layout:
    """The one canonical layout a request is gated, hashed and built from."""
    layout = normalize_layout(raw_layout, layer_hints)
    if layout is None:
        raise _error(422, "LAYOUT_INSUFFICIENT", "Layout needs block dimensions and at least one layer.")
    return layout


def _lock_gate(payload: ExportRequest, layout: Layout) -> None:
    decision = check_export_allowed(layout, payload.locked, payload.geometryHash, payload.quoteNo)
    if decision.drift:
        raise _error(
            409,
            "GEOMETRY_HASH_MISMATCH",
            "Quote is locked and its layout no longer matches the locked geometry.",
            geometryHash=decision.digest,
            storedHash=decision.stored,
        )


@app.get("/health")
async def health():
    return {"ok": True}


@app.post("/step-from-layout")
def step_from_layout(payload: StepRequest):
    mode = SolidMode.VISUAL if payload.simple else SolidMode.EXACT
    step_text = build_step(payload.layout, payload.quoteNo, payload.materialLegend, mode=mode)
    if step_text is None:
        logger.info("Rejecting STEP request for quote %s: layout unresolvable", payload.quoteNo)
        raise HTTPException(
            status_code=400,
            detail="Failed to build STEP geometry: block or layer dimensions missing",
        )

    if not step_text.strip():
        raise HTTPException(500, "STEP export produced empty text")

    return {
        "ok": True,
        "step": step_text,
        "quoteNo": payload.quoteNo,
        "materialLegend": payload.materialLegend,
    }


@app.post("/exports")
def exports(payload: ExportRequest, strategy: SolidModelStrategy = Depends(get_strategy)):
    layout = _canonical(payload.layout, payload.layerThicknesses)
    _lock_gate(payload, layout)

    bundle = build_export_bundle(
        layout,
        payload.quoteNo,
        payload.materialLegend,
        svg=payload.svg,
        strategy=strategy,
    )
    return {"ok": True, "quoteNo": payload.quoteNo, **bundle.model_dump()}


@app.post("/step-download")
def step_download(payload: StepDownloadRequest, strategy: SolidModelStrategy = Depends(get_strategy)):
    layout = _canonical(payload.layout, payload.layerThicknesses)
    _lock_gate(payload, layout)

    step_text = export_step(
        layout,
        payload.quoteNo,
        payload.materialLegend,
        layer_index=payload.layerIndex,
        simple=payload.simple,
        strategy=strategy,
    )
    if not step_text:
        raise _error(502, "STEP_EMPTY", "Unable to build a STEP file for this layout.")

    filename = step_filename(payload.quoteNo, payload.layerIndex, payload.simple)
    return Response(
        content=step_text,
        media_type="application/step",
        headers={
            "content-disposition": f'attachment; filename="{filename}"',
            "cache-control": "no-store",
        },
    )


@app.post("/geometry-hash")
async def geometry_hash_endpoint(payload: LockCheckRequest):
    layout = _canonical(payload.layout, payload.layerThicknesses)
    return {"ok": True, "geometryHash": geometry_hash(layout)}


@app.post("/lock-check")
async def lock_check(payload: LockCheckRequest):
    layout = _canonical(payload.layout, payload.layerThicknesses)
    result = compare_geometry(layout, payload.geometryHash)
    return {"ok": True, "match": result.match, "geometryHash": result.digest}


if __name__ == "__main__":
    import uvicorn

    configure_logging(settings.log_level)
    uvicorn.run(
        "foam_export.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
    )
