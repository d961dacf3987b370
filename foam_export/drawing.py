# foam_export/drawing.py
#
# Top-view SVG drawing of a canonical layout.
#
# Canvas is 1000 x 700 with a 40 px margin; the block is scaled uniformly to
# fit and centered. Origin is top-left, y grows downward (same as the layout
# editor's normalized x/y).
#
# The quote legend lives in its own <g id="layout-notes"> overlay. Annotating
# removes every existing legend group (including the older
# <g id="alex-io-notes"> groups found in saved editor drawings) before adding
# a fresh one, so re-applying a layout never stacks legends.

import logging
import re
from typing import List, Optional, Tuple

import svgwrite

from foam_export.cavities import cavity_footprint, iter_polygon
from foam_export.models import Cavity, Layout
from foam_export.outline import NOTES_GROUP_ID, NOTES_GROUP_IDS, outer_outline

logger = logging.getLogger(__name__)

VIEW_W = 1000
VIEW_H = 700
PADDING = 40

NOT_TO_SCALE = "NOT TO SCALE"

BLOCK_STYLE = {"fill": "#e5f0ff", "stroke": "#1d4ed8", "stroke_width": 2}
CAVITY_STYLE = {"fill": "none", "stroke": "#111827", "stroke_width": 1}
LABEL_STYLE = {
    "font_size": 10,
    "fill": "#111827",
    "text_anchor": "middle",
    "dominant_baseline": "middle",
}
LEGEND_FONT = "system-ui, -apple-system, BlinkMacSystemFont, sans-serif"
LEGEND_X = 16
LEGEND_Y_START = 20
LEGEND_Y_STEP = 14

_NOTES_GROUP_RE = re.compile(
    r"<g\b[^>]*\bid=[\"'](?:" + "|".join(map(re.escape, NOTES_GROUP_IDS)) + r")[\"'][^>]*>.*?</g>\s*",
    re.IGNORECASE | re.DOTALL,
)
_XML_DECL = '<?xml version="1.0" encoding="UTF-8"?>\n'


def _r(v: float) -> float:
    return round(v, 2)


def canvas_scale(length_in: float, width_in: float) -> Tuple[float, float, float]:
    """(px per inch, block x, block y) for a block on the fixed canvas."""
    scale = min((VIEW_W - 2 * PADDING) / length_in, (VIEW_H - 2 * PADDING) / width_in)
    block_x = (VIEW_W - length_in * scale) / 2
    block_y = (VIEW_H - width_in * scale) / 2
    return scale, block_x, block_y


def cavity_label(cav: Cavity) -> str:
    if cav.label:
        return cav.label
    if cav.shape == "circle":
        d, _ = cavity_footprint(cav)
        return f'Ø{d:g}×{cav.depthIn:g}"'
    return f'{cav.lengthIn:g}×{cav.widthIn:g}×{cav.depthIn:g}"'


def _draw_block(dwg, layout: Layout, scale: float, bx: float, by: float):
    block = layout.block
    pts = outer_outline(block)
    if len(pts) == 4:
        return dwg.rect(
            insert=(_r(bx), _r(by)),
            size=(_r(block.lengthIn * scale), _r(block.widthIn * scale)),
            class_="block",
            **BLOCK_STYLE,
        )
    # outline points are bottom-left based; flip into the drawing
    return dwg.polygon(
        points=[(_r(bx + x * scale), _r(by + (block.widthIn - y) * scale)) for x, y in pts],
        class_="block",
        **BLOCK_STYLE,
    )


def _draw_cavity(dwg, cav: Cavity, layout: Layout, scale: float, bx: float, by: float):
    L, W = layout.block.lengthIn, layout.block.widthIn
    group = dwg.g(class_="cavity-group")

    if cav.shape == "poly":
        pts = [(_r(bx + x * scale), _r(by + y * scale)) for x, y in iter_polygon(cav, L, W)]
        group.add(dwg.polygon(points=pts, class_="cavity", **CAVITY_STYLE))
        cx = sum(p[0] for p in pts) / len(pts)
        cy = sum(p[1] for p in pts) / len(pts)
    else:
        cl, cw = cavity_footprint(cav)
        w, h = cl * scale, cw * scale
        x = bx + cav.x * L * scale
        y = by + cav.y * W * scale
        cx, cy = x + w / 2, y + h / 2
        if cav.shape == "circle":
            group.add(dwg.circle(center=(_r(cx), _r(cy)), r=_r(min(w, h) / 2),
                                 class_="cavity", **CAVITY_STYLE))
        else:
            rx = (cav.cornerRadiusIn or 0.0) * scale if cav.shape == "roundedRect" else 0.0
            rx = min(rx, w / 2, h / 2)
            group.add(dwg.rect(insert=(_r(x), _r(y)), size=(_r(w), _r(h)),
                               rx=_r(rx), ry=_r(rx), class_="cavity", **CAVITY_STYLE))

    group.add(dwg.text(cavity_label(cav), insert=(_r(cx), _r(cy)), **LABEL_STYLE))
    return group


def build_drawing(layout: Layout, layer_index: Optional[int] = None) -> str:
    """Top-view SVG of ``layout``; ``layer_index`` limits the cavities drawn."""
    block = layout.block
    scale, bx, by = canvas_scale(block.lengthIn, block.widthIn)

    dwg = svgwrite.Drawing(size=(VIEW_W, VIEW_H), viewBox=f"0 0 {VIEW_W} {VIEW_H}", debug=False)
    dwg["data-px-per-inch"] = f"{scale:.6f}"
    dwg.add(_draw_block(dwg, layout, scale, bx, by))

    for idx, layer in enumerate(layout.stack):
        if layer_index is not None and idx != layer_index:
            continue
        group = dwg.g(id=f"layer-{idx + 1}", class_="layer")
        for cav in layer.cavities:
            group.add(_draw_cavity(dwg, cav, layout, scale, bx, by))
        dwg.add(group)

    return _XML_DECL + dwg.tostring()


def legend_lines(layout: Layout, quote_no: Optional[str],
                 material_legend: Optional[str]) -> List[str]:
    b = layout.block
    lines = []
    if quote_no and quote_no.strip():
        lines.append(f"QUOTE: {quote_no.strip()}")
    lines.append(NOT_TO_SCALE)
    lines.append(f"BLOCK: {b.lengthIn:g} x {b.widthIn:g} x {b.thicknessIn:g} in")
    if material_legend and material_legend.strip():
        lines.append(f"MATERIAL: {material_legend.strip()}")
    return lines


def strip_annotations(svg: str) -> str:
    return _NOTES_GROUP_RE.sub("", svg)


def annotate_drawing(
    svg: Optional[str],
    layout: Optional[Layout],
    quote_no: Optional[str],
    material_legend: Optional[str] = None,
) -> Optional[str]:
    """Replace the legend overlay of ``svg``; geometry is left untouched."""
    if not svg or not isinstance(svg, str):
        return svg
    if layout is None:
        return svg

    svg = strip_annotations(svg)
    close_idx = svg.rfind("</svg")
    if close_idx == -1:
        logger.debug("Drawing has no closing </svg>; legend not added")
        return svg

    dwg = svgwrite.Drawing(debug=False)
    notes = dwg.g(id=NOTES_GROUP_ID)
    for i, line in enumerate(legend_lines(layout, quote_no, material_legend)):
        notes.add(dwg.text(
            line,
            insert=(LEGEND_X, LEGEND_Y_START + i * LEGEND_Y_STEP),
            font_family=LEGEND_FONT,
            font_size=12,
            fill="#111827",
        ))
    return svg[:close_idx] + notes.tostring() + "\n" + svg[close_idx:]


def material_legend(name: Optional[str] = None, family: Optional[str] = None,
                    density_lb_ft3: Optional[float] = None) -> Optional[str]:
    """'1.7# Black PE · Polyethylene · 1.7 lb/ft³' style legend text."""
    parts = [p.strip() for p in (name, family) if p and p.strip()]
    if density_lb_ft3 is not None and density_lb_ft3 > 0:
        parts.append(f"{density_lb_ft3:.1f} lb/ft³")
    return " · ".join(parts) if parts else None
