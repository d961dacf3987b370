"""Boundary-representation STEP export for foam layouts."""

from .builder import SolidMode, build_step, plan_layout, step_filename
from .writer import EntityWriter, ForwardReferenceError, StepWriterError

__all__ = [
    'EntityWriter',
    'ForwardReferenceError',
    'SolidMode',
    'StepWriterError',
    'build_step',
    'plan_layout',
    'step_filename',
]
