"""
Linear (fully-connected) layer implementation.

This module provides the `Linear` layer, which performs a batched affine
transform of 2D, batch-major inputs:

    y = x @ W + b

Shape conventions
-----------------
- x : (batch, in_features)
- W : (in_features, out_features)
- b : (out_features,)
- y : (batch, out_features)

Backward rule
-------------
Given dL/dy in `out.grad`:
- dL/dx = dL/dy @ W^T                (written into `x.grad`)
- dL/dW += x^T @ dL/dy               (accumulated into `weight.grad`)
- dL/db += sum(dL/dy, axis=0)        (accumulated into `bias.grad`)

Design note
-----------
Parameters are initialized through the `uniform` weight initializer using a
generator supplied at construction time, so a fixed seed reproduces the same
weights.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

import numpy as np

from ...domain._errors import ShapeError
from .._layer import (
    Layer,
    _check_grad_output,
    _check_input,
    _prepare_output,
)
from ..module._serialization_core import register_layer
from ..tensor._tensor import Tensor
from ..utils.weight_initializer import WeightInitializer

_INIT_BOUND = 0.1


@register_layer()
class Linear(Layer):
    """
    Fully-connected layer performing an affine transform: y = x @ W + b.

    Parameters
    ----------
    in_features : int
        Number of input features per example.
    out_features : int
        Number of output features per example.
    rng : int | np.random.Generator | None, optional
        Seed or generator used to draw the initial weights and bias. A fresh
        entropy-seeded generator is used when omitted.

    Attributes
    ----------
    weight : Tensor
        Trainable weight matrix of shape (in_features, out_features).
    bias : Tensor
        Trainable bias vector of shape (out_features,).

    Raises
    ------
    ValueError
        If `in_features` or `out_features` is not a positive integer.

    Notes
    -----
    - Weight and bias are drawn from U(-0.1, 0.1).
    - Expects 2D inputs. Higher-rank inputs are not implicitly flattened.
    """

    def __init__(
        self,
        in_features: int,
        out_features: int,
        rng: Union[int, np.random.Generator, None] = None,
    ) -> None:
        super().__init__()
        if in_features <= 0 or out_features <= 0:
            raise ValueError("in_features and out_features must be positive integers")

        self.in_features = int(in_features)
        self.out_features = int(out_features)

        self.register_parameter(
            "weight", Tensor(shape=(self.in_features, self.out_features))
        )
        self.register_parameter("bias", Tensor(shape=(self.out_features,)))

        self._reset_parameters(np.random.default_rng(rng))

    def _reset_parameters(self, rng: np.random.Generator) -> None:
        init = WeightInitializer("uniform")
        init(self.weight, low=-_INIT_BOUND, high=_INIT_BOUND, rng=rng)
        init(self.bias, low=-_INIT_BOUND, high=_INIT_BOUND, rng=rng)

    def forward(self, x: Tensor, out: Optional[Tensor] = None) -> Tensor:
        """
        Apply the affine transform to a 2D input tensor.

        Parameters
        ----------
        x : Tensor
            Input tensor of shape (batch, in_features).
        out : Optional[Tensor]
            Destination tensor; allocated when omitted.

        Returns
        -------
        Tensor
            `out`, shaped (batch, out_features).

        Raises
        ------
        ShapeError
            If `x` is not 2D or its feature dimension is not `in_features`.
        """
        self._check_features(x, self.in_features, "input")
        _check_input(self, x)

        batch = x.shape[0]
        xs = x.data.reshape(batch, self.in_features)
        w = self.weight.data.reshape(self.in_features, self.out_features)

        y = xs @ w + self.bias.data

        out = _prepare_output(out, (batch, self.out_features))
        out.data = y
        return out

    def backward(self, out: Tensor, x: Tensor) -> Tensor:
        """
        Propagate `out.grad` back to `x.grad` and accumulate parameter gradients.

        Parameters
        ----------
        out : Tensor
            Output of `forward`, with `out.grad` shaped (batch, out_features).
        x : Tensor
            The input that produced `out`; its data is read and its gradient
            buffer is overwritten.

        Returns
        -------
        Tensor
            `x`, with `x.grad` populated.

        Raises
        ------
        ShapeError
            If `out` or `x` have the wrong rank, feature size or batch size,
            or `out.grad` has not been sized.
        """
        self._check_features(out, self.out_features, "grad_output")
        _check_grad_output(self, out)
        self._check_features(x, self.in_features, "input")
        _check_input(self, x)

        batch = out.shape[0]
        if x.shape[0] != batch:
            raise ShapeError(
                f"{self.describe()}: input batch {x.shape[0]} does not match "
                f"grad_output batch {batch}",
                x.shape,
            )

        x.resize_grad()
        self.weight.resize_grad()
        self.bias.resize_grad()

        g = out.grad.reshape(batch, self.out_features)
        xs = x.data.reshape(batch, self.in_features)
        w = self.weight.data.reshape(self.in_features, self.out_features)

        x.grad[...] = (g @ w.T).reshape(-1)
        self.weight.grad[...] += (xs.T @ g).reshape(-1)
        self.bias.grad[...] += g.sum(axis=0)
        return x

    def _check_features(self, t: Tensor, features: int, what: str) -> None:
        if t.ndim != 2 or t.shape[1] != features:
            raise ShapeError(
                f"{self.describe()} expects {what} of shape "
                f"[batch, {features}], got {list(t.shape)}",
                t.shape,
            )

    def describe(self) -> str:
        return f"Linear(in_features={self.in_features}, out_features={self.out_features})"

    def get_config(self) -> Dict[str, Any]:
        return {
            "in_features": self.in_features,
            "out_features": self.out_features,
        }

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Linear":
        return cls(
            in_features=int(cfg["in_features"]),
            out_features=int(cfg["out_features"]),
        )
