# foam_export/normalize.py
#
# Layout normalizer: loosely shaped layout data -> one canonical Layout.
#
# Inputs seen in the wild:
#   - legacy single layer:  {block, cavities}
#   - multi-layer stack:    {block, stack: [{thicknessIn, cavities}, ...]}
#     (older records use "layers" or "foamLayers" for the stack)
#
# The result is either a complete Layout or None. A Layout is never returned
# with a missing block or an empty stack.

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from foam_export.cavities import cavity_payload, first_pos, first_present, resolve_cavities, safe_pos
from foam_export.models import Block, Layer, Layout, Skip

logger = logging.getLogger(__name__)

BLOCK_LENGTH_KEYS = ("lengthIn", "length_in", "length")
BLOCK_WIDTH_KEYS = ("widthIn", "width_in", "width")
THICKNESS_KEYS = ("thicknessIn", "thickness_in", "heightIn", "height_in", "thickness", "height")
STACK_KEYS = ("stack", "layers", "foamLayers")
CHAMFER_KEYS = ("chamferIn", "chamfer_in")
ROUND_CORNERS_KEYS = ("roundCorners", "round_corners")
ROUND_RADIUS_KEYS = ("roundRadiusIn", "round_radius_in", "round_radius")
CROPPED_KEYS = ("croppedCorners", "cropped_corners")

DEFAULT_CHAMFER_IN = 1.0

DEFAULT_LAYER_LABEL = "Foam layer"


def _as_mapping(raw: Any) -> Optional[Mapping]:
    if isinstance(raw, Mapping):
        return raw
    if hasattr(raw, "model_dump"):
        return raw.model_dump()
    return None


def _clean_label(v: Any) -> Optional[str]:
    if isinstance(v, str) and v.strip():
        return v.strip()
    return None


def _bool_or_none(raw: Mapping, keys: Sequence[str]) -> Optional[bool]:
    v = first_present(raw, keys)
    return v if isinstance(v, bool) else None


def _raw_stack(layout: Mapping) -> list:
    for key in STACK_KEYS:
        v = layout.get(key)
        if isinstance(v, (list, tuple)) and len(v) > 0:
            return list(v)
    return []


def resolve_block(raw: Any) -> Optional[Block]:
    b = _as_mapping(raw)
    if b is None:
        return None

    length = first_pos(b, BLOCK_LENGTH_KEYS)
    width = first_pos(b, BLOCK_WIDTH_KEYS)
    thickness = first_pos(b, THICKNESS_KEYS)
    if length is None or width is None or thickness is None:
        return None

    corner_style = b.get("cornerStyle")
    corner_style = corner_style.strip() if isinstance(corner_style, str) and corner_style.strip() else None
    chamfer = first_pos(b, CHAMFER_KEYS)

    # older records flag a chamfered block with croppedCorners only
    if corner_style is None and _bool_or_none(b, CROPPED_KEYS):
        corner_style = "chamfer"
        chamfer = chamfer or DEFAULT_CHAMFER_IN

    return Block(
        lengthIn=length,
        widthIn=width,
        thicknessIn=thickness,
        cornerStyle=corner_style,
        chamferIn=chamfer,
        roundCorners=_bool_or_none(b, ROUND_CORNERS_KEYS),
        roundRadiusIn=first_pos(b, ROUND_RADIUS_KEYS),
    )


def resolve_layer(raw: Any, hint: Any = None) -> Union[Layer, Skip]:
    """One stack entry -> Layer, or Skip when no positive thickness resolves.

    ``hint`` is the same-index entry of the caller's auxiliary thickness
    list and is only consulted when the layer itself has no thickness.
    """
    layer = _as_mapping(raw)
    if layer is None:
        return Skip(reason="layer is not an object")

    thickness = first_pos(layer, THICKNESS_KEYS) or safe_pos(hint)
    if thickness is None:
        return Skip(reason="layer thickness unresolved")

    try:
        return Layer(
            thicknessIn=thickness,
            label=_clean_label(layer.get("label")),
            cavities=resolve_cavities(layer.get("cavities")),
            roundCorners=_bool_or_none(layer, ROUND_CORNERS_KEYS),
            roundRadiusIn=first_pos(layer, ROUND_RADIUS_KEYS),
        )
    except ValidationError as exc:
        return Skip(reason=f"layer rejected: {exc.errors()[0]['msg']}")


def normalize_layout(raw: Any, layer_hints: Optional[Sequence[Any]] = None) -> Optional[Layout]:
    """Normalize ``raw`` into a canonical Layout.

    Returns None when the block cannot be resolved to three positive
    dimensions or when no layer resolves a positive thickness.
    """
    if isinstance(raw, Layout):
        return raw

    layout = _as_mapping(raw)
    if layout is None:
        return None

    block = resolve_block(layout.get("block"))
    if block is None:
        logger.debug("Layout has no usable block dimensions")
        return None

    hints = list(layer_hints or [])
    raw_stack = _raw_stack(layout)
    stack: List[Layer] = []

    for idx, raw_layer in enumerate(raw_stack):
        hint = hints[idx] if idx < len(hints) else None
        result = resolve_layer(raw_layer, hint)
        if isinstance(result, Skip):
            logger.debug("Dropping layer %d: %s", idx, result.reason)
            continue
        stack.append(result)

    if not raw_stack:
        stack.append(
            Layer(
                thicknessIn=block.thicknessIn,
                label=DEFAULT_LAYER_LABEL,
                cavities=resolve_cavities(layout.get("cavities")),
            )
        )
    elif not stack:
        logger.debug("Layout stack had %d layers, none usable", len(raw_stack))
        return None

    # a lone layer lends its corner rounding to a block that has none
    if len(stack) == 1:
        only = stack[0]
        updates = {}
        if block.roundCorners is None and only.roundCorners is not None:
            updates["roundCorners"] = only.roundCorners
        if block.roundRadiusIn is None and only.roundRadiusIn is not None:
            updates["roundRadiusIn"] = only.roundRadiusIn
        if updates:
            block = block.model_copy(update=updates)

    return Layout(block=block, stack=stack)


def slice_layer(layout: Layout, index: int) -> Optional[Layout]:
    """A one-layer layout for exporting a single layer on its own.

    The block keeps its footprint but takes the layer's thickness.
    """
    if index < 0 or index >= len(layout.stack):
        return None
    layer = layout.stack[index]
    block = layout.block.model_copy(update={"thicknessIn": layer.thicknessIn})
    return Layout(block=block, stack=[layer])


def layout_to_payload(layout: Layout) -> dict:
    """JSON-ready dict of a canonical layout, cavities carrying alias keys."""
    stack = []
    for layer in layout.stack:
        entry = layer.model_dump(exclude_none=True, exclude={"cavities"})
        entry["cavities"] = [cavity_payload(c) for c in layer.cavities]
        stack.append(entry)
    return {
        "block": layout.block.model_dump(exclude_none=True),
        "stack": stack,
    }
