"""
Uniform random weight initializer.

This module registers the ``uniform`` initializer, which draws every element
independently from U(low, high). It is used for Linear weights and biases
(symmetric range around zero) and for BatchNorm scale parameters (a narrow
range around one).

Reproducibility
---------------
The random generator is an explicit argument. Layers forward the generator
they were constructed with, so a fixed seed yields identical parameters.
"""

from typing import Optional

import numpy as np

from ._base import WeightInitializer
from ...tensor._tensor import Tensor


@WeightInitializer.register_initializer("uniform")
def uniform(
    tensor: Tensor,
    low: float = -0.1,
    high: float = 0.1,
    rng: Optional[np.random.Generator] = None,
) -> Tensor:
    """
    Fill a tensor with samples drawn from U(low, high).

    Parameters
    ----------
    tensor : Tensor
        The tensor to initialize in-place. Its shape must be set.
    low, high : float
        Bounds of the sampling interval.
    rng : Optional[np.random.Generator]
        Random generator. A fresh `np.random.default_rng()` is used if omitted.

    Returns
    -------
    Tensor
        The initialized tensor (same object).

    Raises
    ------
    ValueError
        If `low > high`.
    """
    if low > high:
        raise ValueError(f"uniform initializer requires low <= high, got {low} > {high}")

    if rng is None:
        rng = np.random.default_rng()

    n = tensor.size()
    tensor.data = rng.uniform(low, high, size=n).astype(np.float32, copy=False)
    return tensor
