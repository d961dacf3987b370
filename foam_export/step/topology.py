"""B-rep and CSG topology for axis-aligned rectangular solids.

A box is written as its full boundary-representation skeleton:

    8 CARTESIAN_POINT / VERTEX_POINT corners
    6 faces x 4 directed edges (DIRECTION -> VECTOR -> LINE -> EDGE_CURVE
      -> ORIENTED_EDGE), one EDGE_LOOP per face
    6 PLANE surfaces, one ADVANCED_FACE per side
    1 CLOSED_SHELL wrapped in 1 MANIFOLD_SOLID_BREP

Every face loop is ordered counter-clockwise seen from outside the solid,
so the loop winding agrees with the face's outward normal.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from foam_export.step.writer import EntityWriter, format_id_list, step_string

Vec3 = Tuple[float, float, float]

INCH_TO_MM = 25.4

# corner key is (ix, iy, iz) with 0 = min side, 1 = max side
Corner = Tuple[int, int, int]

# (name, outward normal, corner loop)
FACES: Tuple[Tuple[str, Vec3, Tuple[Corner, ...]], ...] = (
    ("bottom", (0.0, 0.0, -1.0), ((0, 0, 0), (0, 1, 0), (1, 1, 0), (1, 0, 0))),
    ("top", (0.0, 0.0, 1.0), ((0, 0, 1), (1, 0, 1), (1, 1, 1), (0, 1, 1))),
    ("front", (0.0, -1.0, 0.0), ((0, 0, 0), (1, 0, 0), (1, 0, 1), (0, 0, 1))),
    ("back", (0.0, 1.0, 0.0), ((0, 1, 0), (0, 1, 1), (1, 1, 1), (1, 1, 0))),
    ("left", (-1.0, 0.0, 0.0), ((0, 0, 0), (0, 0, 1), (0, 1, 1), (0, 1, 0))),
    ("right", (1.0, 0.0, 0.0), ((1, 0, 0), (1, 1, 0), (1, 1, 1), (1, 0, 1))),
)


@dataclass(frozen=True)
class Box:
    """Axis-aligned box: ``origin`` is the min corner, ``size`` the extents."""

    origin: Vec3
    size: Vec3

    @classmethod
    def from_inches(cls, origin: Vec3, size: Vec3) -> "Box":
        return cls(
            origin=tuple(v * INCH_TO_MM for v in origin),
            size=tuple(v * INCH_TO_MM for v in size),
        )

    @property
    def max_corner(self) -> Vec3:
        return tuple(o + s for o, s in zip(self.origin, self.size))

    def corner(self, key: Corner) -> Vec3:
        lo, hi = self.origin, self.max_corner
        return tuple(hi[i] if key[i] else lo[i] for i in range(3))


@dataclass
class WrittenSolid:
    """Ids of a box written to an EntityWriter."""

    brep: int
    shell: int
    box: Box
    faces: Dict[str, int] = field(default_factory=dict)
    points: List[int] = field(default_factory=list)


def _fmt(v: float) -> str:
    # avoid "-0.000000"
    return f"{v + 0.0:.6f}" if abs(v) >= 5e-7 else "0.000000"


def _triple(v: Vec3) -> str:
    return f"({_fmt(v[0])}, {_fmt(v[1])}, {_fmt(v[2])})"


def _direction(a: Vec3, b: Vec3) -> Tuple[Vec3, float]:
    d = (b[0] - a[0], b[1] - a[1], b[2] - a[2])
    length = (d[0] ** 2 + d[1] ** 2 + d[2] ** 2) ** 0.5
    if length == 0.0:
        raise ValueError("degenerate edge")
    return (d[0] / length, d[1] / length, d[2] / length), length


def write_box(writer: EntityWriter, box: Box, name: str = "") -> WrittenSolid:
    """Write ``box`` as a closed manifold solid and return its ids."""
    if min(box.size) <= 0:
        raise ValueError(f"box needs positive extents, got {box.size}")

    point_ids: Dict[Corner, int] = {}
    vertex_ids: Dict[Corner, int] = {}
    for ix in (0, 1):
        for iy in (0, 1):
            for iz in (0, 1):
                key = (ix, iy, iz)
                pt = writer.add(f"CARTESIAN_POINT('', {_triple(box.corner(key))})")
                point_ids[key] = pt
                vertex_ids[key] = writer.add(f"VERTEX_POINT('', #{pt})")

    face_ids: Dict[str, int] = {}
    for face_name, normal, loop in FACES:
        oriented: List[int] = []
        first_dir = None
        for i, start in enumerate(loop):
            end = loop[(i + 1) % len(loop)]
            unit, length = _direction(box.corner(start), box.corner(end))
            dir_id = writer.add(f"DIRECTION('', {_triple(unit)})")
            if first_dir is None:
                first_dir = dir_id
            vec_id = writer.add(f"VECTOR('', #{dir_id}, {_fmt(length)})")
            line_id = writer.add(f"LINE('', #{point_ids[start]}, #{vec_id})")
            edge_id = writer.add(
                f"EDGE_CURVE('', #{vertex_ids[start]}, #{vertex_ids[end]}, #{line_id}, .T.)"
            )
            oriented.append(writer.add(f"ORIENTED_EDGE('', *, *, #{edge_id}, .T.)"))

        loop_id = writer.add(
            "EDGE_LOOP('', (" + ", ".join(f"#{eid}" for eid in oriented) + "))"
        )
        bound = writer.add(f"FACE_OUTER_BOUND('', #{loop_id}, .T.)")
        normal_id = writer.add(f"DIRECTION('', {_triple(normal)})")
        axis = writer.add(
            f"AXIS2_PLACEMENT_3D('', #{point_ids[loop[0]]}, #{normal_id}, #{first_dir})"
        )
        plane = writer.add(f"PLANE('', #{axis})")
        face_ids[face_name] = writer.add(f"ADVANCED_FACE('', (#{bound}), #{plane}, .T.)")

    shell = writer.add(
        "CLOSED_SHELL('', (\n" + format_id_list(list(face_ids.values())) + "\n))"
    )
    brep = writer.add(f"MANIFOLD_SOLID_BREP({step_string(name)}, #{shell})")
    return WrittenSolid(
        brep=brep,
        shell=shell,
        box=box,
        faces=face_ids,
        points=[point_ids[k] for k in sorted(point_ids)],
    )


def write_difference(writer: EntityWriter, base: int, tool: int, name: str = "") -> int:
    """``base`` minus ``tool`` as one BOOLEAN_RESULT entity."""
    return writer.add(f"BOOLEAN_RESULT({step_string(name)}, .DIFFERENCE., #{base}, #{tool})")


def write_csg_solid(writer: EntityWriter, root: int, name: str = "") -> int:
    """Wrap a BOOLEAN_RESULT tree as the solid a CSG representation holds."""
    return writer.add(f"CSG_SOLID({step_string(name)}, #{root})")
