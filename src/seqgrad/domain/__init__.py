"""
Domain layer: error types and the structural protocols implemented by the
infrastructure package.
"""

from ._errors import ShapeError, StateError
from ._layer import ILayer
from ._tensor import ITensor

__all__ = [
    ShapeError.__name__,
    StateError.__name__,
    ILayer.__name__,
    ITensor.__name__,
]
