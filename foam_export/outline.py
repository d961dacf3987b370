# foam_export/outline.py
#
# 2D CAD outline (DXF) of a layout.
#
# Two sources, same primitives:
#   - the SVG drawing's own shapes (preferred): rect -> 4 LINEs,
#     circle -> 1 CIRCLE, polygon -> closed chain of LINEs
#   - the canonical layout geometry, when no drawing is available
#
# The drawing's origin is top-left (y down); DXF's is bottom-left (y up).
# Every derived y is flipped:  outline_y = canvas_height - drawing_y - height

import io
import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import ezdxf
from ezdxf import units

from foam_export.cavities import cavity_footprint, iter_polygon
from foam_export.models import Block, Layout

logger = logging.getLogger(__name__)

NOTES_GROUP_ID = "layout-notes"
# legend groups to ignore; editor SVGs may still carry the older id
NOTES_GROUP_IDS = (NOTES_GROUP_ID, "alex-io-notes")

BLOCK_LAYER = "BLOCK"
CAVITY_LAYER = "CAVITY"
BLOCK_COLOR = 5   # ACI blue
CAVITY_COLOR = 1  # ACI red

DXF_VERSION = "R2010"
UNITLESS = 0
ARC_SEGMENTS = 12

Point = Tuple[float, float]


@dataclass(frozen=True)
class OutlineRect:
    x: float
    y: float
    w: float
    h: float
    layer: str = CAVITY_LAYER


@dataclass(frozen=True)
class OutlineCircle:
    cx: float
    cy: float
    r: float
    layer: str = CAVITY_LAYER


@dataclass(frozen=True)
class OutlinePolyline:
    points: Tuple[Point, ...]
    layer: str = CAVITY_LAYER


Primitive = Union[OutlineRect, OutlineCircle, OutlinePolyline]


# ─── Outer block outline ─────────────────────────────────────────────────────

def _arc(cx: float, cy: float, r: float, start_deg: float, end_deg: float,
         segments: int) -> List[Point]:
    start, end = math.radians(start_deg), math.radians(end_deg)
    step = (end - start) / max(1, segments)
    return [
        (cx + r * math.cos(start + step * i), cy + r * math.sin(start + step * i))
        for i in range(1, segments + 1)
    ]


def outer_outline(block: Block, segments: int = ARC_SEGMENTS) -> List[Point]:
    """Closed outline of the block footprint, origin bottom-left, y up.

    Square blocks give 4 points. A chamfer (cornerStyle "chamfer") cuts the
    bottom-right and top-left corners; rounded corners are approximated
    with ``segments`` points per quarter arc.
    """
    L, W = block.lengthIn, block.widthIn

    style = (block.cornerStyle or "").lower()
    if style == "chamfer" and block.chamferIn:
        c = max(0.0, min(block.chamferIn, L / 2 - 1e-6, W / 2 - 1e-6))
        if c > 1e-4:
            return [(0.0, 0.0), (L - c, 0.0), (L, c), (L, W), (c, W), (0.0, W - c)]

    if block.roundCorners and block.roundRadiusIn:
        r = max(0.0, min(block.roundRadiusIn, L / 2 - 1e-6, W / 2 - 1e-6))
        if r > 0:
            pts: List[Point] = [(r, 0.0), (L - r, 0.0)]
            pts += _arc(L - r, r, r, -90, 0, segments)
            pts.append((L, W - r))
            pts += _arc(L - r, W - r, r, 0, 90, segments)
            pts.append((r, W))
            pts += _arc(r, W - r, r, 90, 180, segments)
            pts.append((0.0, r))
            pts += _arc(r, r, r, 180, 270, segments)
            return pts

    return [(0.0, 0.0), (L, 0.0), (L, W), (0.0, W)]


# ─── Primitives from layout geometry ─────────────────────────────────────────

def layout_primitives(layout: Layout, layer_index: Optional[int] = None) -> List[Primitive]:
    """Outline primitives in inches; the canvas is the block footprint."""
    L, W = layout.block.lengthIn, layout.block.widthIn
    out: List[Primitive] = []

    block_pts = outer_outline(layout.block)
    if len(block_pts) == 4:
        out.append(OutlineRect(0.0, 0.0, L, W, BLOCK_LAYER))
    else:
        out.append(OutlinePolyline(tuple(block_pts), BLOCK_LAYER))

    for idx, layer in enumerate(layout.stack):
        if layer_index is not None and idx != layer_index:
            continue
        for cav in layer.cavities:
            if cav.shape == "poly":
                out.append(OutlinePolyline(tuple((x, W - y) for x, y in iter_polygon(cav, L, W))))
                continue
            left, top = cav.x * L, cav.y * W
            cl, cw = cavity_footprint(cav)
            if cav.shape == "circle":
                r = min(cl, cw) / 2
                out.append(OutlineCircle(left + cl / 2, W - (top + cw / 2), r))
            else:
                out.append(OutlineRect(left, W - top - cw, cl, cw))
    return out


# ─── Primitives parsed from an SVG drawing ───────────────────────────────────

_NUM = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _num(el: ET.Element, name: str, default: float = 0.0) -> float:
    m = _NUM.search(el.get(name) or "")
    return float(m.group()) if m else default


def _canvas_height(root: ET.Element) -> Optional[float]:
    view_box = _NUM.findall(root.get("viewBox") or "")
    if len(view_box) == 4:
        return float(view_box[3])
    m = _NUM.search(root.get("height") or "")
    return float(m.group()) if m else None


def _iter_shapes(el: ET.Element):
    for child in el:
        name = _local(child.tag)
        if name == "g":
            if child.get("id") in NOTES_GROUP_IDS:
                continue
            yield from _iter_shapes(child)
        elif name in ("rect", "circle", "polygon"):
            yield name, child


def drawing_primitives(svg: str) -> Optional[Tuple[List[Primitive], int]]:
    """(primitives, $INSUNITS) parsed from ``svg``, or None if it is unusable.

    Coordinates are converted to inches when the drawing carries a
    ``data-px-per-inch`` attribute and stay in drawing units otherwise.
    """
    try:
        root = ET.fromstring(svg.encode("utf-8"))
    except ET.ParseError as exc:
        logger.debug("Drawing is not parseable SVG: %s", exc)
        return None

    height = _canvas_height(root)
    if height is None:
        return None
    scale = _num(root, "data-px-per-inch", 0.0)
    insunits = units.IN if scale > 0 else UNITLESS
    scale = scale if scale > 0 else 1.0

    out: List[Primitive] = []
    for name, el in _iter_shapes(root):
        layer = BLOCK_LAYER if "block" in (el.get("class") or "").split() else CAVITY_LAYER
        if name == "rect":
            x, y = _num(el, "x"), _num(el, "y")
            w, h = _num(el, "width"), _num(el, "height")
            if w <= 0 or h <= 0:
                continue
            out.append(OutlineRect(x / scale, (height - y - h) / scale, w / scale, h / scale, layer))
        elif name == "circle":
            r = _num(el, "r")
            if r <= 0:
                continue
            cx, cy = _num(el, "cx"), _num(el, "cy")
            out.append(OutlineCircle(cx / scale, (height - cy) / scale, r / scale, layer))
        else:
            nums = [float(v) for v in _NUM.findall(el.get("points") or "")]
            pts = tuple(
                (nums[i] / scale, (height - nums[i + 1]) / scale)
                for i in range(0, len(nums) - 1, 2)
            )
            if len(pts) >= 3:
                out.append(OutlinePolyline(pts, layer))
    return (out, insunits) if out else None


# ─── DXF writing ─────────────────────────────────────────────────────────────

def _polyline_edges(points: Sequence[Point]):
    for i, start in enumerate(points):
        yield start, points[(i + 1) % len(points)]


def write_outline(primitives: Sequence[Primitive], insunits: int = units.IN) -> str:
    """DXF text for ``primitives`` (LINE and CIRCLE entities only)."""
    doc = ezdxf.new(DXF_VERSION)
    doc.units = insunits
    doc.layers.add(BLOCK_LAYER, color=BLOCK_COLOR)
    doc.layers.add(CAVITY_LAYER, color=CAVITY_COLOR)
    msp = doc.modelspace()

    for prim in primitives:
        attribs = {"layer": prim.layer}
        if isinstance(prim, OutlineCircle):
            msp.add_circle((prim.cx, prim.cy), prim.r, dxfattribs=attribs)
            continue
        if isinstance(prim, OutlineRect):
            pts = [
                (prim.x, prim.y),
                (prim.x + prim.w, prim.y),
                (prim.x + prim.w, prim.y + prim.h),
                (prim.x, prim.y + prim.h),
            ]
        else:
            pts = list(prim.points)
        for start, end in _polyline_edges(pts):
            msp.add_line(start, end, dxfattribs=attribs)

    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue()


def outline_from_drawing(svg: Optional[str]) -> Optional[str]:
    if not svg:
        return None
    parsed = drawing_primitives(svg)
    if parsed is None:
        return None
    prims, insunits = parsed
    return write_outline(prims, insunits)


def outline_from_layout(layout: Optional[Layout], layer_index: Optional[int] = None) -> Optional[str]:
    if layout is None:
        return None
    return write_outline(layout_primitives(layout, layer_index))


def build_outline(layout: Optional[Layout], svg: Optional[str] = None) -> Optional[str]:
    """DXF from the drawing when it parses, else from layout geometry."""
    dxf = outline_from_drawing(svg)
    if dxf is not None:
        return dxf
    if svg:
        logger.info("Drawing gave no outline primitives; deriving DXF from layout")
    return outline_from_layout(layout)
