"""Layout -> STEP solid model.

Frame used by the kernel (all in inches until emission, then millimetres):

    X  along the block length, from the drawing's left edge
    Y  along the block width, from the drawing's top edge
    Z  up through the stack, 0 at the bottom of the first layer

Layers stack bottom-to-top in the order given. Each cavity becomes a box
whose top face is flush with the top of its layer and whose depth is
clamped to the layer thickness. Circles, rounded rectangles and polygons
are cut as their bounding rectangle.

Two modes, chosen by the caller:

    SolidMode.EXACT   one BOOLEAN_RESULT(.DIFFERENCE.) per cavity, the
                      chain wrapped in one CSG_SOLID per cut layer
    SolidMode.VISUAL  cavity boxes written as separate solids next to the
                      uncut layers, for viewers that cannot evaluate CSG
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from foam_export.cavities import cavity_footprint
from foam_export.models import Cavity, Layout
from foam_export.normalize import normalize_layout
from foam_export.step.document import render, write_product
from foam_export.step.topology import Box, write_box, write_csg_solid, write_difference
from foam_export.step.writer import EntityWriter

logger = logging.getLogger(__name__)

STEP_EXTENSION = ".step"


class SolidMode(str, enum.Enum):
    EXACT = "exact"
    VISUAL = "visual"


@dataclass(frozen=True)
class CavityBox:
    """Inch-space box of one cavity plus the depth it asked for."""

    origin: Tuple[float, float, float]
    size: Tuple[float, float, float]
    shape: str
    requested_depth: float


@dataclass
class LayerPlan:
    index: int
    origin: Tuple[float, float, float]
    size: Tuple[float, float, float]
    cavities: List[CavityBox] = field(default_factory=list)


def _footprint(cav: Cavity, length: float, width: float) -> Tuple[float, float, float, float]:
    """(left, top, length, width) of the cavity's bounding rectangle."""
    if cav.shape == "poly" and cav.points:
        xs = [p.x * length for p in cav.points]
        ys = [p.y * width for p in cav.points]
        return min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys)
    cl, cw = cavity_footprint(cav)
    return cav.x * length, cav.y * width, cl, cw


def plan_cavity(cav: Cavity, length: float, width: float, z_bottom: float,
                thickness: float) -> Optional[CavityBox]:
    left, top, cl, cw = _footprint(cav, length, width)
    if cl <= 0 or cw <= 0 or cl >= length or cw >= width:
        return None

    # keep the footprint inside the block
    left = max(0.0, min(length - cl, left))
    top = max(0.0, min(width - cw, top))

    depth = min(cav.depthIn, thickness)
    z_top = z_bottom + thickness
    return CavityBox(
        origin=(left, top, z_top - depth),
        size=(cl, cw, depth),
        shape=cav.shape,
        requested_depth=cav.depthIn,
    )


def plan_layout(layout: Layout) -> List[LayerPlan]:
    """Inch-space boxes for every layer and cavity, bottom layer first."""
    length, width = layout.block.lengthIn, layout.block.widthIn
    plans: List[LayerPlan] = []
    z = 0.0
    for idx, layer in enumerate(layout.stack):
        t = layer.thicknessIn
        plan = LayerPlan(index=idx, origin=(0.0, 0.0, z), size=(length, width, t))
        for c_idx, cav in enumerate(layer.cavities):
            box = plan_cavity(cav, length, width, z, t)
            if box is None:
                logger.debug("Layer %d cavity %d does not fit the block; dropped", idx, c_idx)
                continue
            plan.cavities.append(box)
        plans.append(plan)
        z += t
    return plans


def write_solids(writer: EntityWriter, plans: Sequence[LayerPlan],
                 mode: SolidMode = SolidMode.EXACT) -> Tuple[List[int], List[int]]:
    """Write every planned solid; returns (B-rep solids, CSG solids).

    In EXACT mode a layer with cavities becomes one CSG_SOLID over its
    chain of differences; layers without cavities stay plain B-rep solids.
    """
    breps: List[int] = []
    csg_solids: List[int] = []
    for plan in plans:
        layer_name = f"layer_{plan.index + 1}"
        base = write_box(writer, Box.from_inches(plan.origin, plan.size), layer_name)
        current = base.brep
        visuals: List[int] = []
        for c_idx, cav in enumerate(plan.cavities):
            cav_name = f"{layer_name}_cavity_{c_idx + 1}"
            tool = write_box(writer, Box.from_inches(cav.origin, cav.size), cav_name)
            if mode is SolidMode.EXACT:
                current = write_difference(writer, current, tool.brep, layer_name)
            else:
                visuals.append(tool.brep)
        if current == base.brep:
            breps.append(current)
        else:
            csg_solids.append(write_csg_solid(writer, current, layer_name))
        breps.extend(visuals)
    return breps, csg_solids


def describe(layout: Layout, quote_no: Optional[str], material_legend: Optional[str]) -> str:
    b = layout.block
    parts = [
        f"Foam block {b.lengthIn:g} x {b.widthIn:g} x {b.thicknessIn:g} in",
        f"{len(layout.stack)} layer(s)",
        f"{layout.cavity_count} cavities",
    ]
    if quote_no:
        parts.append(f"quote {quote_no}")
    if material_legend:
        parts.append(f"material {material_legend}")
    return "; ".join(parts)


def build_step(
    layout: Any,
    quote_no: Optional[str] = None,
    material_legend: Optional[str] = None,
    mode: SolidMode = SolidMode.EXACT,
    timestamp: Optional[datetime] = None,
) -> Optional[str]:
    """STEP text for ``layout``, or None when the layout is insufficient."""
    canonical = normalize_layout(layout)
    if canonical is None:
        logger.warning(
            "STEP export skipped for quote %s: block or layers unresolvable", quote_no or "-"
        )
        return None

    writer = EntityWriter()
    breps, csg_solids = write_solids(writer, plan_layout(canonical), mode)
    name = quote_no or "foam_layout"
    write_product(writer, breps, name=name, csg_items=csg_solids)
    return render(
        writer,
        name=name,
        description=describe(canonical, quote_no, material_legend),
        timestamp=timestamp,
    )


def step_filename(quote_no: str, layer_index: Optional[int] = None, simple: bool = False) -> str:
    safe = re.sub(r"[^A-Za-z0-9]", "_", quote_no or "") or "layout"
    if layer_index is not None:
        safe += f"_layer_{layer_index + 1}"
    if simple:
        safe += "_simple"
    return safe + STEP_EXTENSION
