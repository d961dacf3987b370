# foam_export/geometry_hash.py
#
# Geometry digest + lock gate.
#
# The digest covers what gets cut: block size and corner treatment, layer
# thicknesses in stack order, and each cavity's shape, position, size and
# polygon points. Labels, legends and drawing annotations are left out, as
# is the order of cavities within a layer.
#
# The stored digest belongs to the quote record. This module compares
# against it; committing a new digest is the quote store's job.

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from foam_export.models import Cavity, Layout
from foam_export.normalize import normalize_layout

logger = logging.getLogger(__name__)

HASH_PREFIX = "sha256:"
PRECISION = 6


def _n(v: Optional[float]) -> Optional[float]:
    return None if v is None else round(float(v), PRECISION)


def _cavity_content(cav: Cavity) -> dict:
    return {
        "shape": cav.shape,
        "x": _n(cav.x),
        "y": _n(cav.y),
        "length": _n(cav.lengthIn),
        "width": _n(cav.widthIn),
        "depth": _n(cav.depthIn),
        "diameter": _n(cav.diameterIn),
        "cornerRadius": _n(cav.cornerRadiusIn),
        "points": [[_n(p.x), _n(p.y)] for p in cav.points] if cav.points else None,
    }


def geometry_content(layout: Layout) -> dict:
    """The hashed subset of ``layout`` as plain JSON-ready data."""
    b = layout.block
    stack = []
    for layer in layout.stack:
        cavities = [_cavity_content(c) for c in layer.cavities]
        cavities.sort(key=lambda c: json.dumps(c, sort_keys=True))
        stack.append({"thickness": _n(layer.thicknessIn), "cavities": cavities})
    return {
        "block": {
            "length": _n(b.lengthIn),
            "width": _n(b.widthIn),
            "thickness": _n(b.thicknessIn),
            "cornerStyle": (b.cornerStyle or "").lower() or None,
            "chamfer": _n(b.chamferIn),
            "roundCorners": b.roundCorners,
            "roundRadius": _n(b.roundRadiusIn),
        },
        "stack": stack,
    }


def geometry_hash(layout: Any, layer_hints: Optional[Sequence[Any]] = None) -> Optional[str]:
    """``sha256:<hex>`` digest of the layout geometry, None if unresolvable.

    ``layer_hints`` resolve missing layer thicknesses exactly as the export
    builders do, so a digest always describes the stack that gets built.
    """
    canonical = normalize_layout(layout, layer_hints)
    if canonical is None:
        return None
    payload = json.dumps(geometry_content(canonical), sort_keys=True, separators=(",", ":"))
    return HASH_PREFIX + hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class HashComparison:
    match: bool
    digest: Optional[str]


@dataclass(frozen=True)
class LockDecision:
    allowed: bool
    drift: bool
    digest: Optional[str]
    stored: Optional[str]


def compare_geometry(layout: Any, stored_hash: Optional[str],
                     layer_hints: Optional[Sequence[Any]] = None) -> HashComparison:
    digest = geometry_hash(layout, layer_hints)
    return HashComparison(match=bool(stored_hash) and digest == stored_hash, digest=digest)


def check_export_allowed(layout: Any, locked: bool, stored_hash: Optional[str],
                         quote_no: Optional[str] = None,
                         layer_hints: Optional[Sequence[Any]] = None) -> LockDecision:
    """Gate an export on the quote's lock state.

    Unlocked quotes always pass; the digest is informational. A locked quote
    with a stored digest passes only when the current geometry hashes to
    the same value. A locked quote with no stored digest has nothing to
    drift from and passes.
    """
    comparison = compare_geometry(layout, stored_hash, layer_hints)
    drift = bool(locked and stored_hash and not comparison.match)
    if drift:
        logger.warning(
            "Geometry drift on locked quote %s: stored %s, current %s",
            quote_no or "-", stored_hash, comparison.digest,
        )
    return LockDecision(allowed=not drift, drift=drift, digest=comparison.digest, stored=stored_hash)
