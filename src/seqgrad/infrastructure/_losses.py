"""
Loss functions.

Currently implemented losses:
- mse_loss : Mean Squared Error

Losses are plain functions that consume two tensors and return a
single-element tensor. No backward is defined here: callers seed the model's
output gradient themselves, e.g. with ``2 * (pred - target) / n`` for MSE.
"""

from __future__ import annotations

import numpy as np

from ..domain._errors import ShapeError
from .tensor._tensor import Tensor


def mse_loss(pred: Tensor, target: Tensor) -> Tensor:
    """
    Compute the mean of squared elementwise differences.

    Parameters
    ----------
    pred : Tensor
        Predicted values.
    target : Tensor
        Ground-truth values with the same number of elements as `pred`.

    Returns
    -------
    Tensor
        A tensor of shape (1,) holding the loss.

    Raises
    ------
    ShapeError
        If `pred` and `target` hold different numbers of elements, or hold
        none.

    Notes
    -----
    Only element counts are compared; `pred` and `target` may carry
    different shapes over the same flat layout.
    """
    if pred.data.size != target.data.size:
        raise ShapeError(
            f"mse_loss: pred has {pred.data.size} elements, "
            f"target has {target.data.size}",
            pred.shape,
        )
    if pred.data.size == 0:
        raise ShapeError("mse_loss: inputs hold no data", pred.shape)

    diff = pred.data - target.data
    value = np.mean(diff * diff, dtype=np.float32)
    return Tensor.full((1,), float(value))
