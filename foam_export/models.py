# foam_export/models.py
#
# Canonical layout types shared by the drawing, outline and STEP builders.
#
# Field names follow the layout editor's wire names (lengthIn, widthIn, ...)
# so a canonical layout can be posted to another export service unchanged.
# Every model is frozen: a Layout is produced once by the normalizer and then
# read, never edited, by every downstream builder.

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CAVITY_SHAPES = ("rect", "roundedRect", "circle", "poly")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class PolygonPoint(_Frozen):
    x: float = Field(..., ge=0.0, le=1.0)
    y: float = Field(..., ge=0.0, le=1.0)


class Cavity(_Frozen):
    shape: str = "rect"
    x: float = Field(..., ge=0.0, le=1.0)
    y: float = Field(..., ge=0.0, le=1.0)
    lengthIn: float
    widthIn: float
    depthIn: float

    diameterIn: Optional[float] = None
    cornerRadiusIn: Optional[float] = None
    points: Optional[List[PolygonPoint]] = None
    label: Optional[str] = None

    @field_validator("lengthIn", "widthIn", "depthIn")
    @classmethod
    def positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("Dimension must be > 0")
        return v

    @field_validator("shape")
    @classmethod
    def known_shape(cls, v: str) -> str:
        if v not in CAVITY_SHAPES:
            raise ValueError(f"Unknown cavity shape: {v}")
        return v

    @model_validator(mode="after")
    def polygon_points(self):
        if self.shape == "poly" and len(self.points or []) < 3:
            raise ValueError("Polygon cavity needs at least 3 points")
        return self


class Layer(_Frozen):
    thicknessIn: float
    label: Optional[str] = None
    cavities: List[Cavity] = Field(default_factory=list)

    roundCorners: Optional[bool] = None
    roundRadiusIn: Optional[float] = None

    @field_validator("thicknessIn")
    @classmethod
    def positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("Layer thickness must be > 0")
        return v


class Block(_Frozen):
    lengthIn: float
    widthIn: float
    thicknessIn: float

    # carried verbatim; only the 2D outputs draw a chamfer
    cornerStyle: Optional[str] = None
    chamferIn: Optional[float] = None
    roundCorners: Optional[bool] = None
    roundRadiusIn: Optional[float] = None

    @field_validator("lengthIn", "widthIn", "thicknessIn")
    @classmethod
    def positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("Block dimensions must be > 0")
        return v


class Layout(_Frozen):
    block: Block
    stack: List[Layer] = Field(..., min_length=1)

    @property
    def cavity_count(self) -> int:
        return sum(len(layer.cavities) for layer in self.stack)

    @property
    def stack_thickness_in(self) -> float:
        return sum(layer.thicknessIn for layer in self.stack)


class Skip(_Frozen):
    """Marker returned in place of an item that failed validation."""

    reason: str


class ExportBundle(_Frozen):
    svg: Optional[str] = None
    dxf: Optional[str] = None
    step: Optional[str] = None
    geometryHash: Optional[str] = None


# ---------------------------------------------------------------------------
# Service payloads. Layouts arrive loosely shaped and are normalized by the
# handlers, so they are typed as plain dicts here.


class StepRequest(BaseModel):
    layout: dict
    quoteNo: str
    materialLegend: Optional[str] = None
    simple: bool = False


class ExportRequest(BaseModel):
    layout: dict
    quoteNo: str
    materialLegend: Optional[str] = None
    svg: Optional[str] = None
    layerThicknesses: Optional[List[Optional[float]]] = None

    # lock state owned by the quote store, compared but never written here
    locked: bool = False
    geometryHash: Optional[str] = None


class StepDownloadRequest(ExportRequest):
    layerIndex: Optional[int] = Field(None, ge=0)
    simple: bool = False


class LockCheckRequest(BaseModel):
    layout: dict
    geometryHash: Optional[str] = None
    layerThicknesses: Optional[List[Optional[float]]] = None
