"""
Pointwise activation layers.

This module provides the stateless activations ReLU, Sigmoid and Tanh.

Backward from the output
------------------------
Each activation derives its local gradient from the *output* value it
produced, not from its input:

- ReLU:    dy/dx = 1 if y > 0 else 0
- Sigmoid: dy/dx = s * (1 - s)        where s = sigmoid(x) = y
- Tanh:    dy/dx = 1 - t^2            where t = tanh(x) = y

so `backward(out, x)` only needs `out.data` and `out.grad`.

Notes
-----
- These layers own no parameters; `parameters()` is empty.
- The shared `_PointwiseActivation` base handles buffer validation and
  sizing; subclasses only supply the elementwise function and derivative.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ...domain._errors import ShapeError
from ...domain.model._stateless_mixin import StatelessConfigMixin
from .._layer import (
    Layer,
    _check_grad_output,
    _check_input,
    _prepare_grad_input,
    _prepare_output,
)
from ..module._serialization_core import register_layer
from ..tensor._tensor import Tensor


class _PointwiseActivation(StatelessConfigMixin, Layer):
    """
    Base class for elementwise activations whose derivative is a function of
    the output value.
    """

    def _apply(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _derivative(self, y: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def forward(self, x: Tensor, out: Optional[Tensor] = None) -> Tensor:
        """
        Apply the activation elementwise.

        Parameters
        ----------
        x : Tensor
            Input tensor of any valid shape.
        out : Optional[Tensor]
            Destination tensor; allocated when omitted.

        Returns
        -------
        Tensor
            `out`, shaped like `x`.
        """
        _check_input(self, x)
        out = _prepare_output(out, x.shape)
        out.data = self._apply(x.data)
        return out

    def backward(self, out: Tensor, x: Tensor) -> Tensor:
        """
        Write ``out.grad * f'(out.data)`` into `x.grad`.

        Raises
        ------
        ShapeError
            If `out.grad` is absent, or `x` is shaped differently from `out`.
        """
        _check_input(self, out)
        _check_grad_output(self, out)

        if not x.shape:
            _prepare_grad_input(x, out.shape)
        elif x.shape != out.shape:
            raise ShapeError(
                f"{self.describe()}: input shape {list(x.shape)} does not match "
                f"output shape {list(out.shape)}",
                x.shape,
            )

        x.resize_grad()
        x.grad[...] = out.grad * self._derivative(out.data)
        return x


@register_layer()
class ReLU(_PointwiseActivation):
    """
    Rectified linear unit: relu(x) = max(0, x).
    """

    def _apply(self, x: np.ndarray) -> np.ndarray:
        return np.maximum(x, np.float32(0.0))

    def _derivative(self, y: np.ndarray) -> np.ndarray:
        return (y > 0).astype(np.float32)


@register_layer()
class Sigmoid(_PointwiseActivation):
    """
    Logistic sigmoid: sigmoid(x) = 1 / (1 + exp(-x)).
    """

    def _apply(self, x: np.ndarray) -> np.ndarray:
        # exp(-x) overflows to inf for large negative x; result saturates to 0
        with np.errstate(over="ignore"):
            return (1.0 / (1.0 + np.exp(-x))).astype(np.float32)

    def _derivative(self, y: np.ndarray) -> np.ndarray:
        return y * (1.0 - y)


@register_layer()
class Tanh(_PointwiseActivation):
    """
    Hyperbolic tangent: tanh(x).
    """

    def _apply(self, x: np.ndarray) -> np.ndarray:
        return np.tanh(x)

    def _derivative(self, y: np.ndarray) -> np.ndarray:
        return 1.0 - y * y
