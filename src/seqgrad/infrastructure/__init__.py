"""
Infrastructure layer: concrete tensor, layers, model, loss and serialization.
"""

from ._layer import Layer
from ._losses import mse_loss
from .layers import (
    BatchNorm1d,
    BatchNorm2d,
    BatchNorm3d,
    Linear,
    ReLU,
    Sigmoid,
    Tanh,
)
from .models import Model
from .tensor import Tensor

__all__ = [
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
