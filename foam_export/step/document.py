"""STEP document assembly: representation context, product chain, header."""

import io
from datetime import datetime, timezone
from typing import Optional, Sequence, TextIO

from foam_export.step.writer import EntityWriter, format_id_list, step_string

DEFAULT_SCHEMA = "AUTOMOTIVE_DESIGN"
ORIGINATING_SYSTEM = "foam-layout-export"


def _write_context(writer: EntityWriter) -> int:
    """Millimetre / radian / steradian unit context; returns its id."""
    length_unit = writer.add("( LENGTH_UNIT() NAMED_UNIT(*) SI_UNIT(.MILLI., .METRE.) )")
    plane_angle_unit = writer.add("( NAMED_UNIT(*) PLANE_ANGLE_UNIT() SI_UNIT($, .RADIAN.) )")
    solid_angle_unit = writer.add("( NAMED_UNIT(*) SI_UNIT($, .STERADIAN.) SOLID_ANGLE_UNIT() )")
    uncertainty = writer.add(
        f"UNCERTAINTY_MEASURE_WITH_UNIT(LENGTH_MEASURE(1.E-06), #{length_unit}, "
        "'distance_accuracy_value', 'confusion accuracy')"
    )
    return writer.add(
        "( GEOMETRIC_REPRESENTATION_CONTEXT(3)"
        f" GLOBAL_UNCERTAINTY_ASSIGNED_CONTEXT((#{uncertainty}))"
        f" GLOBAL_UNIT_ASSIGNED_CONTEXT((#{length_unit}, #{plane_angle_unit}, #{solid_angle_unit}))"
        " REPRESENTATION_CONTEXT('Context #1', '3D Context with UNIT and UNCERTAINTY') )"
    )


def write_product(
    writer: EntityWriter,
    items: Sequence[int] = (),
    *,
    name: str,
    csg_items: Sequence[int] = (),
) -> int:
    """Attach solids to shape representations linked to a product.

    ``csg_items`` (CSG_SOLID ids) go into a CSG_SHAPE_REPRESENTATION and
    ``items`` (MANIFOLD_SOLID_BREP ids) into an
    ADVANCED_BREP_SHAPE_REPRESENTATION. When both are present the CSG one
    is the product's shape and the B-rep one is related to it.
    Returns the SHAPE_DEFINITION_REPRESENTATION id.
    """
    if not items and not csg_items:
        raise ValueError("STEP export generated no representation items")

    app_context = writer.add("APPLICATION_CONTEXT('core data for automotive mechanical design processes')")
    writer.add(
        f"APPLICATION_PROTOCOL_DEFINITION('international standard', 'automotive_design', 2000, #{app_context})"
    )
    prod_context = writer.add(f"PRODUCT_CONTEXT('', #{app_context}, 'mechanical')")
    product = writer.add(
        f"PRODUCT({step_string(name)}, {step_string(name)}, '', (#{prod_context}))"
    )
    formation = writer.add(f"PRODUCT_DEFINITION_FORMATION('', '', #{product})")
    pd_context = writer.add(f"PRODUCT_DEFINITION_CONTEXT('part definition', #{app_context}, 'design')")
    product_def = writer.add(f"PRODUCT_DEFINITION('design', '', #{formation}, #{pd_context})")
    shape = writer.add(f"PRODUCT_DEFINITION_SHAPE('', '', #{product_def})")

    geom_context = _write_context(writer)
    representations = [
        writer.add(
            f"{kind}({step_string(name)}, (\n" + format_id_list(list(ids)) + f"\n), #{geom_context})"
        )
        for kind, ids in (
            ("CSG_SHAPE_REPRESENTATION", csg_items),
            ("ADVANCED_BREP_SHAPE_REPRESENTATION", items),
        )
        if ids
    ]
    sdr = writer.add(f"SHAPE_DEFINITION_REPRESENTATION(#{shape}, #{representations[0]})")
    for related in representations[1:]:
        writer.add(f"SHAPE_REPRESENTATION_RELATIONSHIP('', '', #{representations[0]}, #{related})")
    return sdr


def write_header(
    stream: TextIO,
    *,
    name: str,
    description: str,
    schema: str = DEFAULT_SCHEMA,
    timestamp: Optional[datetime] = None,
) -> None:
    stamp = (timestamp or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%S")
    stream.write("ISO-10303-21;\n")
    stream.write("HEADER;\n")
    stream.write(f"FILE_DESCRIPTION(({step_string(description)}), '2;1');\n")
    stream.write(
        f"FILE_NAME({step_string(name)}, '{stamp}', ('{ORIGINATING_SYSTEM}'), (''), "
        f"'{ORIGINATING_SYSTEM}', '{ORIGINATING_SYSTEM}', '');\n"
    )
    stream.write(f"FILE_SCHEMA(('{schema}'));\n")
    stream.write("ENDSEC;\n")


def render(
    writer: EntityWriter,
    *,
    name: str,
    description: str,
    schema: str = DEFAULT_SCHEMA,
    timestamp: Optional[datetime] = None,
) -> str:
    """Header plus the writer's data section as one document string."""
    stream = io.StringIO()
    write_header(stream, name=name, description=description, schema=schema, timestamp=timestamp)
    stream.write("DATA;\n")
    writer.write(stream)
    stream.write("ENDSEC;\nEND-ISO-10303-21;\n")
    return stream.getvalue()
