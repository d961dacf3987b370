"""
Shared layout fixtures.
"""
import pytest


@pytest.fixture
def scenario_layout():
    """10 x 8 x 2 block, one layer, one 3 x 2 x 1 rect cavity at (0.2, 0.3)."""
    return {
        "block": {"lengthIn": 10, "widthIn": 8, "thicknessIn": 2},
        "stack": [
            {
                "thicknessIn": 2,
                "label": "Base",
                "cavities": [
                    {"shape": "rect", "lengthIn": 3, "widthIn": 2, "depthIn": 1, "x": 0.2, "y": 0.3},
                ],
            }
        ],
    }


@pytest.fixture
def mixed_layout():
    """Two layers with one cavity of every shape."""
    return {
        "block": {"lengthIn": 12, "widthIn": 10, "thicknessIn": 3, "cornerStyle": "chamfer", "chamferIn": 1},
        "stack": [
            {"thicknessIn": 1, "label": "Bottom pad", "cavities": []},
            {
                "thicknessIn": 2,
                "label": "Top",
                "cavities": [
                    {"shape": "rect", "lengthIn": 2, "widthIn": 1, "depthIn": 0.5, "x": 0.05, "y": 0.05},
                    {"shape": "roundedRect", "lengthIn": 3, "widthIn": 2, "depthIn": 1,
                     "cornerRadiusIn": 0.25, "x": 0.4, "y": 0.1, "label": "Charger"},
                    {"shape": "circle", "lengthIn": 2, "widthIn": 2, "diameterIn": 2, "depthIn": 1.5,
                     "x": 0.1, "y": 0.5},
                    {"shape": "poly", "lengthIn": 2, "widthIn": 2, "depthIn": 1, "x": 0.6, "y": 0.6,
                     "points": [{"x": 0.6, "y": 0.6}, {"x": 0.9, "y": 0.6}, {"x": 0.75, "y": 0.9}]},
                ],
            },
        ],
    }
