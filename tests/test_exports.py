"""Tests for the export bundle."""
import io
import logging

import ezdxf

from foam_export.exports import build_export_bundle, drawing_artifacts, export_step
from foam_export.geometry_hash import geometry_hash
from foam_export.models import ExportBundle
from foam_export.normalize import normalize_layout
from foam_export.strategies import SolidModelStrategy


class NullStrategy(SolidModelStrategy):

    name = "null"

    def build(self, layout, quote_no, material_legend=None, cancel=None):
        return None


class RecordingStrategy(SolidModelStrategy):

    name = "recording"

    def __init__(self):
        self.layouts = []

    def build(self, layout, quote_no, material_legend=None, cancel=None):
        self.layouts.append(layout)
        return "STEP"


class RaisingStrategy(SolidModelStrategy):

    name = "raising"

    def build(self, layout, quote_no, material_legend=None, cancel=None):
        raise RuntimeError("kernel crashed")


def test_full_bundle(scenario_layout):
    bundle = build_export_bundle(scenario_layout, "Q-1", "PE")
    assert 'id="layout-notes"' in bundle.svg
    assert "MATERIAL: PE" in bundle.svg
    assert "BOOLEAN_RESULT" in bundle.step
    assert bundle.geometryHash == geometry_hash(scenario_layout)
    doc = ezdxf.read(io.StringIO(bundle.dxf))
    assert len(doc.modelspace().query("LINE")) == 8


def test_supplied_drawing_is_annotated(scenario_layout):
    editor_svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 200 100" id="editor">'
        '<rect x="10" y="10" width="180" height="80" class="block"/>'
        "</svg>"
    )
    svg, dxf = drawing_artifacts(normalize_layout(scenario_layout), "Q-1", None, editor_svg)
    assert 'id="editor"' in svg
    assert "QUOTE: Q-1" in svg
    doc = ezdxf.read(io.StringIO(dxf))
    lines = list(doc.modelspace().query("LINE"))
    assert len(lines) == 4
    assert {line.dxf.layer for line in lines} == {"BLOCK"}


def test_insufficient_layout(caplog):
    with caplog.at_level(logging.WARNING, logger="foam_export.exports"):
        bundle = build_export_bundle({"block": {"lengthIn": 10}}, "Q-3")
    assert bundle == ExportBundle()
    assert "Q-3" in caplog.text


def test_missing_step_leaves_other_artifacts(scenario_layout):
    bundle = build_export_bundle(scenario_layout, "Q-1", strategy=NullStrategy())
    assert bundle.step is None
    assert bundle.svg and bundle.dxf and bundle.geometryHash


def test_raising_strategy_leaves_drawing(scenario_layout, caplog):
    with caplog.at_level(logging.ERROR, logger="foam_export.exports"):
        bundle = build_export_bundle(scenario_layout, "Q-1", strategy=RaisingStrategy())
    assert bundle.step is None
    assert bundle.svg and bundle.dxf and bundle.geometryHash
    assert "kernel crashed" in caplog.text


def test_raising_drawing_leaves_step(scenario_layout, monkeypatch):
    def broken(*args, **kwargs):
        raise ValueError("bad drawing")

    monkeypatch.setattr("foam_export.exports.build_drawing", broken)
    bundle = build_export_bundle(scenario_layout, "Q-1")
    assert bundle.svg is None
    assert bundle.dxf is None
    assert "BOOLEAN_RESULT" in bundle.step


def test_layer_hints_reach_strategy():
    strategy = RecordingStrategy()
    raw = {"block": {"lengthIn": 10, "widthIn": 8, "thicknessIn": 3}, "stack": [{"label": "a"}, {"thicknessIn": 1}]}
    bundle = build_export_bundle(raw, "Q-1", strategy=strategy, layer_hints=[2])
    assert bundle.step == "STEP"
    assert [layer.thicknessIn for layer in strategy.layouts[0].stack] == [2, 1]


class TestExportStep:

    def test_single_layer(self, mixed_layout):
        step = export_step(mixed_layout, "Q-1", layer_index=1)
        assert "Foam block 12 x 10 x 2 in" in step
        assert "1 layer(s)" in step
        assert "4 cavities" in step

    def test_simple_uses_uncut_solids(self, scenario_layout):
        step = export_step(scenario_layout, "Q-1", simple=True, strategy=NullStrategy())
        assert step is not None
        assert "BOOLEAN_RESULT" not in step

    def test_bad_layer_index(self, mixed_layout):
        assert export_step(mixed_layout, "Q-1", layer_index=5) is None

    def test_insufficient_layout(self):
        assert export_step({}, "Q-1") is None
