"""
seqgrad: a minimal reverse-mode engine for feed-forward numeric pipelines.

The public API re-exports the tensor, the layer family, the sequential model,
the loss and the error types.
"""

from .domain._errors import ShapeError, StateError
from .infrastructure import (
    BatchNorm1d,
    BatchNorm2d,
    BatchNorm3d,
    Layer,
    Linear,
    Model,
    ReLU,
    Sigmoid,
    Tanh,
    Tensor,
    mse_loss,
)

__version__ = "0.1.0"

__all__ = [
    "ShapeError",
    "StateError",
    "Tensor",
    "Layer",
    "Linear",
    "ReLU",
    "Sigmoid",
    "Tanh",
    "BatchNorm1d",
    "BatchNorm2d",
    "BatchNorm3d",
    "Model",
    "mse_loss",
]
