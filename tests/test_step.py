"""Tests for the STEP writer, box topology and layout builder."""
import logging
import re
from datetime import datetime

import pytest

from foam_export.normalize import normalize_layout
from foam_export.step import (
    EntityWriter,
    ForwardReferenceError,
    SolidMode,
    build_step,
    plan_layout,
    step_filename,
)
from foam_export.step.topology import INCH_TO_MM, Box, write_box
from foam_export.step.writer import step_string

FIXED_TIME = datetime(2025, 1, 2, 3, 4, 5)

_ENTITY = re.compile(r"^#(\d+) = (.*?);$", re.M | re.S)


def _data_entities(text):
    data = text.split("DATA;\n", 1)[1].split("ENDSEC;", 1)[0]
    return [(int(idx), body) for idx, body in _ENTITY.findall(data)]


def _count(text, entity_type):
    return text.count(f"= {entity_type}(")


class TestEntityWriter:

    def test_sequential_ids(self):
        writer = EntityWriter()
        a = writer.add("DIRECTION('', (1.0, 0.0, 0.0))")
        b = writer.add(f"VECTOR('', #{a}, 1.0)")
        assert (a, b) == (1, 2)
        assert writer.last_id == 2
        assert writer.entities[1] == "#2 = VECTOR('', #1, 1.0);"

    def test_forward_reference_rejected(self):
        writer = EntityWriter()
        writer.add("DIRECTION('', (1.0, 0.0, 0.0))")
        with pytest.raises(ForwardReferenceError):
            writer.add("VECTOR('', #2, 1.0)")
        with pytest.raises(ForwardReferenceError):
            writer.add("VECTOR('', #5, 1.0)")

    def test_hash_inside_string_is_not_a_reference(self):
        writer = EntityWriter()
        assert writer.add("PRODUCT('1.7#12 PE', '', '', ())") == 1

    def test_count(self):
        writer = EntityWriter()
        writer.add("DIRECTION('', (1.0, 0.0, 0.0))")
        writer.add("DIRECTION('', (0.0, 1.0, 0.0))")
        assert writer.count("DIRECTION") == 2
        assert writer.count("VECTOR") == 0


def test_step_string_escapes():
    assert step_string("O'Neil") == "'O''Neil'"
    assert step_string("a\\b") == "'a\\\\b'"
    assert step_string("lb/ft³") == "'lb/ft\\X2\\00B3\\X0\\'"


def test_single_box_topology():
    writer = EntityWriter()
    solid = write_box(writer, Box((0.0, 0.0, 0.0), (10.0, 20.0, 30.0)), "block")
    assert writer.count("CARTESIAN_POINT") == 8
    assert writer.count("VERTEX_POINT") == 8
    assert writer.count("EDGE_CURVE") == 24
    assert writer.count("ORIENTED_EDGE") == 24
    assert writer.count("EDGE_LOOP") == 6
    assert writer.count("FACE_OUTER_BOUND") == 6
    assert writer.count("PLANE") == 6
    assert writer.count("ADVANCED_FACE") == 6
    assert writer.count("CLOSED_SHELL") == 1
    assert writer.count("MANIFOLD_SOLID_BREP") == 1
    assert solid.brep == writer.last_id
    assert set(solid.faces) == {"bottom", "top", "front", "back", "left", "right"}


def test_degenerate_box_rejected():
    with pytest.raises(ValueError):
        write_box(EntityWriter(), Box((0.0, 0.0, 0.0), (10.0, 0.0, 30.0)))


def test_box_from_inches():
    box = Box.from_inches((1.0, 2.0, 0.5), (3.0, 2.0, 1.0))
    assert box.origin == pytest.approx((25.4, 50.8, 12.7))
    assert box.max_corner == pytest.approx((4 * INCH_TO_MM, 4 * INCH_TO_MM, 1.5 * INCH_TO_MM))


class TestBuildStep:

    def test_plain_block_document(self):
        text = build_step({"block": {"lengthIn": 10, "widthIn": 8, "thicknessIn": 2}}, "Q-1",
                          timestamp=FIXED_TIME)
        assert text.startswith("ISO-10303-21;\nHEADER;\n")
        assert text.endswith("ENDSEC;\nEND-ISO-10303-21;\n")
        assert "FILE_SCHEMA(('AUTOMOTIVE_DESIGN'));" in text
        assert "'2025-01-02T03:04:05'" in text
        assert _count(text, "CARTESIAN_POINT") == 8
        assert _count(text, "EDGE_CURVE") == 24
        assert _count(text, "EDGE_LOOP") == 6
        assert _count(text, "ADVANCED_FACE") == 6
        assert _count(text, "MANIFOLD_SOLID_BREP") == 1
        assert _count(text, "BOOLEAN_RESULT") == 0
        assert "ADVANCED_BREP_SHAPE_REPRESENTATION" in text
        assert "SI_UNIT(.MILLI., .METRE.)" in text
        # 10 x 8 x 2 in far corner
        assert "CARTESIAN_POINT('', (254.000000, 203.200000, 50.800000))" in text

    def test_no_forward_references(self, mixed_layout):
        text = build_step(mixed_layout, "Q-2", timestamp=FIXED_TIME)
        entities = _data_entities(text)
        assert [idx for idx, _ in entities] == list(range(1, len(entities) + 1))
        for idx, body in entities:
            for ref in re.findall(r"#(\d+)", re.sub(r"'(?:[^']|'')*'", "", body)):
                assert 0 < int(ref) < idx

    def test_scenario_cavity_coordinates(self, scenario_layout):
        plans = plan_layout(normalize_layout(scenario_layout))
        assert len(plans) == 1
        cav = plans[0].cavities[0]
        assert cav.origin == pytest.approx((2.0, 2.4, 1.0))
        assert cav.size == pytest.approx((3.0, 2.0, 1.0))

        box = Box.from_inches(cav.origin, cav.size)
        assert box.origin == pytest.approx((50.8, 60.96, 25.4))
        assert box.max_corner[2] == pytest.approx(50.8)

        text = build_step(scenario_layout, "Q-1", timestamp=FIXED_TIME)
        assert "CARTESIAN_POINT('', (50.800000, 60.960000, 25.400000))" in text

    def test_exact_mode_subtracts(self, scenario_layout):
        text = build_step(scenario_layout, "Q-1", mode=SolidMode.EXACT)
        assert _count(text, "MANIFOLD_SOLID_BREP") == 2
        assert _count(text, "BOOLEAN_RESULT") == 1
        assert ".DIFFERENCE." in text
        assert _count(text, "CSG_SOLID") == 1
        assert _count(text, "CSG_SHAPE_REPRESENTATION") == 1
        assert _count(text, "ADVANCED_BREP_SHAPE_REPRESENTATION") == 0

    def test_exact_mode_representation_items(self):
        text = build_step({
            "block": {"lengthIn": 10, "widthIn": 8, "thicknessIn": 3},
            "stack": [
                {"thicknessIn": 1},
                {"thicknessIn": 2, "cavities": [{"lengthIn": 2, "widthIn": 2, "depthIn": 1, "x": 0.4, "y": 0.4}]},
            ],
        }, "Q", mode=SolidMode.EXACT)
        entities = dict(_data_entities(text))

        def items_of(kind):
            [body] = [b for b in entities.values() if b.startswith(kind + "(")]
            # last reference is the geometric context
            return [int(ref) for ref in re.findall(r"#(\d+)", body)[:-1]]

        csg_items = items_of("CSG_SHAPE_REPRESENTATION")
        assert len(csg_items) == 1
        assert all(entities[i].startswith("CSG_SOLID(") for i in csg_items)
        root = int(re.search(r"#(\d+)\)$", entities[csg_items[0]]).group(1))
        assert entities[root].startswith("BOOLEAN_RESULT(")

        brep_items = items_of("ADVANCED_BREP_SHAPE_REPRESENTATION")
        assert len(brep_items) == 1
        assert entities[brep_items[0]].startswith("MANIFOLD_SOLID_BREP('layer_1'")

        assert _count(text, "SHAPE_DEFINITION_REPRESENTATION") == 1
        assert _count(text, "SHAPE_REPRESENTATION_RELATIONSHIP") == 1

    def test_visual_mode_keeps_solids_apart(self, scenario_layout):
        text = build_step(scenario_layout, "Q-1", mode=SolidMode.VISUAL)
        assert _count(text, "MANIFOLD_SOLID_BREP") == 2
        assert _count(text, "BOOLEAN_RESULT") == 0
        assert "ADVANCED_BREP_SHAPE_REPRESENTATION" in text

    def test_depth_clamped_to_layer(self, scenario_layout):
        scenario_layout["stack"][0]["cavities"][0]["depthIn"] = 5
        cav = plan_layout(normalize_layout(scenario_layout))[0].cavities[0]
        assert cav.size[2] == pytest.approx(2.0)
        assert cav.origin[2] == pytest.approx(0.0)
        assert cav.requested_depth == 5

    def test_layers_stack_upwards(self):
        layout = normalize_layout({
            "block": {"lengthIn": 10, "widthIn": 8, "thicknessIn": 2.5},
            "stack": [
                {"thicknessIn": 1},
                {"thicknessIn": 1.5, "cavities": [{"lengthIn": 2, "widthIn": 2, "depthIn": 0.5, "x": 0.5, "y": 0.5}]},
            ],
        })
        bottom, top = plan_layout(layout)
        assert bottom.origin == (0.0, 0.0, 0.0)
        assert top.origin == (0.0, 0.0, 1.0)
        cav = top.cavities[0]
        # flush with the top of the stack
        assert cav.origin[2] + cav.size[2] == pytest.approx(2.5)

    def test_round_shapes_cut_as_bounding_box(self):
        layout = normalize_layout({
            "block": {"lengthIn": 10, "widthIn": 8, "thicknessIn": 2},
            "stack": [{"thicknessIn": 2, "cavities": [
                {"shape": "circle", "lengthIn": 3, "widthIn": 3, "diameterIn": 2, "depthIn": 1, "x": 0.1, "y": 0.25},
            ]}],
        })
        cav = plan_layout(layout)[0].cavities[0]
        assert cav.shape == "circle"
        assert cav.origin == pytest.approx((1.0, 2.0, 1.0))
        assert cav.size == pytest.approx((2.0, 2.0, 1.0))

    def test_oversize_cavity_dropped(self, scenario_layout):
        scenario_layout["stack"][0]["cavities"][0]["lengthIn"] = 12
        plans = plan_layout(normalize_layout(scenario_layout))
        assert plans[0].cavities == []

    def test_footprint_kept_inside_block(self, scenario_layout):
        scenario_layout["stack"][0]["cavities"][0]["x"] = 0.9
        cav = plan_layout(normalize_layout(scenario_layout))[0].cavities[0]
        assert cav.origin[0] == pytest.approx(7.0)

    def test_insufficient_layout(self, caplog):
        with caplog.at_level(logging.WARNING, logger="foam_export.step.builder"):
            result = build_step({"block": {"lengthIn": 10, "widthIn": 8, "thicknessIn": 2},
                                 "stack": [{"thicknessIn": 0}, {"label": "x"}]}, "Q-9")
        assert result is None
        assert "Q-9" in caplog.text

    def test_header_description(self, scenario_layout):
        text = build_step(scenario_layout, "Q-1", "PE · 1.7 lb/ft³", timestamp=FIXED_TIME)
        header = text.split("DATA;", 1)[0]
        assert "Foam block 10 x 8 x 2 in" in header
        assert "1 cavities" in header
        assert "quote Q-1" in header
        assert "\\X2\\00B3\\X0\\" in header


@pytest.mark.parametrize("args,expected", [
    (("Q-AI-2025/11",), "Q_AI_2025_11.step"),
    (("Q-1", 1), "Q_1_layer_2.step"),
    (("Q-1", None, True), "Q_1_simple.step"),
    (("",), "layout.step"),
])
def test_step_filename(args, expected):
    assert step_filename(*args) == expected
