"""
Constant-fill initializers: ``zeros`` for bias and shift parameters,
``ones`` for scale-like parameters that should start as the identity.
"""

from ...tensor._tensor import Tensor
from ._base import WeightInitializer


@WeightInitializer.register_initializer("zeros")
def zeros(tensor: Tensor) -> Tensor:
    tensor.fill(0.0)
    return tensor


@WeightInitializer.register_initializer("ones")
def ones(tensor: Tensor) -> Tensor:
    tensor.fill(1.0)
    return tensor
