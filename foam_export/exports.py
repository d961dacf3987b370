# foam_export/exports.py
#
# Export bundle: annotated SVG drawing + DXF outline + STEP solid model.
#
# Drawing/outline and solid model are independent functions of the same
# canonical layout and are built side by side. Any one of them may come
# back empty without affecting the others.

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, Sequence, Tuple

from foam_export.drawing import annotate_drawing, build_drawing
from foam_export.geometry_hash import geometry_hash
from foam_export.models import ExportBundle, Layout
from foam_export.normalize import normalize_layout, slice_layer
from foam_export.outline import build_outline
from foam_export.step import SolidMode
from foam_export.strategies import LocalStepStrategy, SolidModelStrategy

logger = logging.getLogger(__name__)


def drawing_artifacts(
    layout: Layout,
    quote_no: str,
    material_legend: Optional[str] = None,
    svg: Optional[str] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """(annotated SVG, DXF). The editor's SVG is used when supplied."""
    base = svg if svg and svg.strip() else build_drawing(layout)
    annotated = annotate_drawing(base, layout, quote_no, material_legend)
    return annotated, build_outline(layout, annotated)


def _settle(job: Future, artifact: str, quote_no: str, default: Any) -> Any:
    """Result of ``job``, or ``default`` when it raised. One artifact
    failing leaves the rest of the bundle intact."""
    try:
        return job.result()
    except Exception:
        logger.exception("%s export failed for quote %s", artifact, quote_no)
        return default


def build_export_bundle(
    raw_layout: Any,
    quote_no: str,
    material_legend: Optional[str] = None,
    svg: Optional[str] = None,
    strategy: Optional[SolidModelStrategy] = None,
    layer_hints: Optional[Sequence[Any]] = None,
    cancel: Optional[threading.Event] = None,
) -> ExportBundle:
    layout = normalize_layout(raw_layout, layer_hints)
    if layout is None:
        logger.warning(
            "Export skipped for quote %s: layout missing block dimensions or usable layers",
            quote_no,
        )
        return ExportBundle()

    strategy = strategy or LocalStepStrategy()
    with ThreadPoolExecutor(max_workers=2) as pool:
        drawing_job = pool.submit(drawing_artifacts, layout, quote_no, material_legend, svg)
        step_job = pool.submit(strategy.build, layout, quote_no, material_legend, cancel)
        svg_out, dxf_out = _settle(drawing_job, "drawing", quote_no, (None, None))
        step_out = _settle(step_job, "STEP", quote_no, None)

    if step_out is None:
        logger.warning("No STEP produced for quote %s (strategy %s)", quote_no, strategy.name)

    return ExportBundle(svg=svg_out, dxf=dxf_out, step=step_out, geometryHash=geometry_hash(layout))


def export_step(
    raw_layout: Any,
    quote_no: str,
    material_legend: Optional[str] = None,
    layer_index: Optional[int] = None,
    simple: bool = False,
    strategy: Optional[SolidModelStrategy] = None,
    layer_hints: Optional[Sequence[Any]] = None,
) -> Optional[str]:
    """STEP text for a whole layout or one of its layers.

    ``simple`` forces the local kernel in visual mode (uncut solids), for
    lightweight viewers that do not evaluate boolean results.
    """
    layout = normalize_layout(raw_layout, layer_hints)
    if layout is None:
        logger.warning("STEP export skipped for quote %s: layout unresolvable", quote_no)
        return None
    if layer_index is not None:
        layout = slice_layer(layout, layer_index)
        if layout is None:
            logger.warning("STEP export skipped for quote %s: no layer %d", quote_no, layer_index)
            return None
    if simple:
        strategy = LocalStepStrategy(SolidMode.VISUAL)
    return (strategy or LocalStepStrategy()).build(layout, quote_no, material_legend)
