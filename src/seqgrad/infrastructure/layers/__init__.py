"""
Layer implementations.

Importing this package registers every layer class with the layer registry.
"""

from ._activations import ReLU, Sigmoid, Tanh
from ._batchnorm import BatchNorm1d, BatchNorm2d, BatchNorm3d
from ._linear import Linear

__all__ = [
    Linear.__name__,
    ReLU.__name__,
    Sigmoid.__name__,
    Tanh.__name__,
    BatchNorm1d.__name__,
    BatchNorm2d.__name__,
    BatchNorm3d.__name__,
]
