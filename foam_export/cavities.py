# foam_export/cavities.py
#
# Cavity shape resolver.
#
# Cavities reach us from the layout editor, from saved layout packages and
# from older quote records, each spelling the same fields differently. Every
# canonical attribute below has ONE ordered list of source keys; the first key
# holding a usable value wins. Nothing downstream looks at raw keys again.
#
# Shape precedence:
#   1. explicit shape / cavityShape / type, if recognised (an explicit
#      polygon with 3+ valid points is never overridden)
#   2. positive corner radius  -> roundedRect (unless already circle)
#   3. positive diameter       -> circle (unless explicitly roundedRect)
#   4. rect

import logging
import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from foam_export.models import Cavity, PolygonPoint, Skip

logger = logging.getLogger(__name__)

LENGTH_KEYS = ("lengthIn", "length_in", "length")
WIDTH_KEYS = ("widthIn", "width_in", "width")
DEPTH_KEYS = ("depthIn", "depth_in", "depth", "heightIn", "height_in", "height")
SHAPE_KEYS = ("shape", "cavityShape", "type")
CORNER_RADIUS_KEYS = (
    "cornerRadiusIn",
    "corner_radius_in",
    "corner_radius",
    "radiusIn",
    "radius_in",
    "r",
    "rx",
    "ry",
)
DIAMETER_KEYS = ("diameterIn", "diameter_in", "diameter", "dia", "d")

SHAPE_SYNONYMS = {
    "circle": "circle",
    "round": "circle",
    "rect": "rect",
    "rectangle": "rect",
    "square": "rect",
    "roundedrect": "roundedRect",
    "rounded-rect": "roundedRect",
    "rounded_rect": "roundedRect",
    "roundrect": "roundedRect",
    "poly": "poly",
    "polygon": "poly",
}


def safe_pos(v: Any) -> Optional[float]:
    """Return ``v`` as a finite float > 0, else None."""
    if v is None or isinstance(v, bool):
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) and n > 0 else None


def safe_norm01(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) and 0.0 <= n <= 1.0 else None


def first_pos(raw: Mapping, keys: Sequence[str]) -> Optional[float]:
    for key in keys:
        n = safe_pos(raw.get(key))
        if n is not None:
            return n
    return None


def first_present(raw: Mapping, keys: Sequence[str]) -> Any:
    """First non-None value over ``keys`` (no coercion)."""
    for key in keys:
        v = raw.get(key)
        if v is not None:
            return v
    return None


def normalize_shape(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    return SHAPE_SYNONYMS.get(raw.strip().lower())


def _polygon_points(raw: Any) -> Optional[List[PolygonPoint]]:
    if not isinstance(raw, (list, tuple)):
        return None
    pts = []
    for p in raw:
        if isinstance(p, PolygonPoint):
            pts.append(p)
            continue
        if isinstance(p, Mapping):
            px, py = safe_norm01(p.get("x")), safe_norm01(p.get("y"))
        elif isinstance(p, (list, tuple)) and len(p) == 2:
            px, py = safe_norm01(p[0]), safe_norm01(p[1])
        else:
            continue
        if px is not None and py is not None:
            pts.append(PolygonPoint(x=px, y=py))
    return pts if len(pts) >= 3 else None


def _as_mapping(raw: Any) -> Optional[Mapping]:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, Cavity):
        return raw.model_dump()
    return None


def resolve_cavity(raw: Any) -> Union[Cavity, Skip]:
    """Resolve one raw cavity entry into a canonical Cavity or a Skip."""
    c = _as_mapping(raw)
    if c is None:
        return Skip(reason="cavity is not an object")

    length = first_pos(c, LENGTH_KEYS)
    width = first_pos(c, WIDTH_KEYS) or length
    depth = first_pos(c, DEPTH_KEYS)
    x = safe_norm01(c.get("x"))
    y = safe_norm01(c.get("y"))

    if length is None or width is None:
        return Skip(reason="cavity size unresolved")
    if depth is None:
        return Skip(reason="cavity depth unresolved")
    if x is None or y is None:
        return Skip(reason="cavity position missing or outside 0..1")

    shape = normalize_shape(first_present(c, SHAPE_KEYS))
    corner_r = first_pos(c, CORNER_RADIUS_KEYS)
    diameter = first_pos(c, DIAMETER_KEYS)

    # polygon points resolve first; a valid polygon keeps its shape
    points = None
    if shape == "poly":
        points = _polygon_points(c.get("points"))
        if points is None:
            return Skip(reason="polygon cavity has fewer than 3 valid points")
    else:
        if corner_r is not None and shape != "circle":
            shape = "roundedRect"
        if diameter is not None and shape in (None, "circle"):
            shape = "circle"
        if shape is None:
            shape = "rect"

    label = c.get("label")
    label = label.strip() if isinstance(label, str) and label.strip() else None

    try:
        return Cavity(
            shape=shape,
            x=x,
            y=y,
            lengthIn=length,
            widthIn=width,
            depthIn=depth,
            diameterIn=diameter,
            cornerRadiusIn=corner_r,
            points=points,
            label=label,
        )
    except ValidationError as exc:
        return Skip(reason=f"cavity rejected: {exc.errors()[0]['msg']}")


def resolve_cavities(raws: Any) -> List[Cavity]:
    """Resolve a raw cavity list, dropping entries that resolve to Skip."""
    if not isinstance(raws, (list, tuple)):
        return []
    out: List[Cavity] = []
    for idx, raw in enumerate(raws):
        result = resolve_cavity(raw)
        if isinstance(result, Skip):
            logger.debug("Dropping cavity %d: %s", idx, result.reason)
            continue
        out.append(result)
    return out


def cavity_payload(cav: Cavity) -> dict:
    """Canonical fields plus the alias keys older consumers look for."""
    out = cav.model_dump(exclude_none=True)
    if cav.points is not None:
        out["points"] = [{"x": p.x, "y": p.y} for p in cav.points]
    out.update(
        cavityShape=cav.shape,
        type=cav.shape,
        radiusIn=cav.cornerRadiusIn,
        r=cav.cornerRadiusIn,
        diameter=cav.diameterIn,
    )
    return out


def cavity_footprint(cav: Cavity) -> tuple:
    """(length, width) in inches of the cavity's bounding rectangle.

    Circles use the diameter (falling back to the smaller side); polygons
    are normalized to the block and have no inch size of their own, so they
    are handled by the callers that know the block.
    """
    if cav.shape == "circle":
        d = cav.diameterIn or min(cav.lengthIn, cav.widthIn)
        return d, d
    return cav.lengthIn, cav.widthIn


def iter_polygon(cav: Cavity, length_in: float, width_in: float) -> Iterable[tuple]:
    for p in cav.points or ():
        yield p.x * length_in, p.y * width_in
