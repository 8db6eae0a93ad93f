"""
Batch Normalization layers.

This module implements classic Batch Normalization for:
- **BatchNorm1d**: 2D inputs of shape (N, C), normalized per feature over N.
- **BatchNorm2d**: 4D inputs of shape (N, C, H, W), normalized per channel over
  (N, H, W).
- **BatchNorm3d**: 5D inputs of shape (N, C, D, H, W), normalized per channel
  over (N, D, H, W).

All three share `_BatchNormNd`; they differ only in the expected input rank.
The channel axis is always axis 1, and statistics are pooled over every other
axis (the "normalization set" of a channel, of size `count`).

Forward
-------
Per channel c:

    mean_c  = mean(x[:, c, ...])
    var_c   = mean((x[:, c, ...] - mean_c) ** 2)        (biased, divide by count)
    inv_std = 1 / sqrt(var_c + eps)
    x_hat   = (x - mean_c) * inv_std
    y       = gamma_c * x_hat + beta_c                  (affine)
            = x_hat                                     (otherwise)

Running statistics (when `track_running_stats`): the first forward call *sets*
them to the batch statistics; later calls blend

    running = (1 - momentum) * running + momentum * batch

There is no evaluation mode: every forward call normalizes with batch
statistics and updates the running estimates.

Backward
--------
Forward caches a copy of the raw input buffer. Backward recomputes mean, var,
inv_std and x_hat from it, then per channel:

    sum_dy      = sum(dy)
    sum_dy_xhat = sum(dy * x_hat)
    dx          = inv_std * gamma * (dy - sum_dy / count - x_hat * sum_dy_xhat / count)
    beta.grad  += sum_dy
    gamma.grad += sum_dy_xhat
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from ...domain._errors import ShapeError, StateError
from .._layer import (
    Layer,
    _check_grad_output,
    _check_input,
    _prepare_grad_input,
    _prepare_output,
)
from ..module._serialization_core import register_layer
from ..tensor._tensor import Tensor
from ..utils.weight_initializer import WeightInitializer

logger = logging.getLogger(__name__)

_GAMMA_LOW = 0.9
_GAMMA_HIGH = 1.1


class _BatchNormNd(Layer):
    """
    Shared Batch Normalization implementation over an arbitrary input rank.

    Parameters
    ----------
    num_features : int
        Number of channels C (size of axis 1 of the input).
    eps : float, default=1e-5
        Small constant added to the variance for numerical stability.
    momentum : float, default=0.1
        Blend factor for running statistics after the first update.
    affine : bool, default=True
        If True, learnable scale (gamma) and shift (beta) parameters are used.
    track_running_stats : bool, default=True
        If True, running mean/variance buffers are maintained.
    rng : int | np.random.Generator | None, optional
        Seed or generator used to draw the initial gamma values.

    Attributes
    ----------
    gamma : Tensor | None
        Scale of shape (C,), drawn from U(0.9, 1.1), if affine else None.
    beta : Tensor | None
        Shift of shape (C,), zero-initialized, if affine else None.
    running_mean, running_var : Tensor | None
        Running statistics of shape (C,) if tracked, else None.
    num_batches_tracked : int
        Number of forward calls that updated the running statistics. Saved
        with checkpoints as the one-element buffer "num_batches_tracked"; the
        next forward sets (rather than blends) the running statistics while
        it is zero.
    """

    _expected_rank: int = 0
    _layout: str = ""

    def __init__(
        self,
        num_features: int,
        eps: float = 1e-5,
        momentum: float = 0.1,
        affine: bool = True,
        track_running_stats: bool = True,
        rng: Union[int, np.random.Generator, None] = None,
    ) -> None:
        super().__init__()
        if num_features <= 0:
            raise ValueError("num_features must be a positive integer")

        self.num_features = int(num_features)
        self.eps = float(eps)
        self.momentum = float(momentum)
        self.affine = bool(affine)
        self.track_running_stats = bool(track_running_stats)

        if self.affine:
            gamma = Tensor(shape=(self.num_features,))
            beta = Tensor(shape=(self.num_features,))
            WeightInitializer("uniform")(
                gamma, low=_GAMMA_LOW, high=_GAMMA_HIGH, rng=np.random.default_rng(rng)
            )
            WeightInitializer("zeros")(beta)
            gamma.resize_grad()
            beta.resize_grad()
            self.register_parameter("gamma", gamma)
            self.register_parameter("beta", beta)
        else:
            self.gamma = None
            self.beta = None

        if self.track_running_stats:
            self.register_buffer("running_mean", Tensor(shape=(self.num_features,)))
            self.register_buffer("running_var", Tensor(shape=(self.num_features,)))
        else:
            self.register_buffer("running_mean", None)
            self.register_buffer("running_var", None)

        self._batch_count = Tensor(shape=(1,))
        if self.track_running_stats:
            # stored under the public name; the attribute is the int property
            self._buffers["num_batches_tracked"] = self._batch_count

        self._input_data: Optional[np.ndarray] = None
        self._input_shape: Tuple[int, ...] = ()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _check_layout(self, t: Tensor, what: str) -> None:
        if t.ndim != self._expected_rank:
            raise ShapeError(
                f"{self.describe()} expects {what} of rank {self._expected_rank} "
                f"{self._layout}, got shape {list(t.shape)}",
                t.shape,
            )
        if t.shape[1] != self.num_features:
            raise ShapeError(
                f"{self.describe()} expects {self.num_features} channels in "
                f"{what}, got {t.shape[1]}",
                t.shape,
            )

    @staticmethod
    def _reduce_axes(ndim: int) -> Tuple[int, ...]:
        return (0,) + tuple(range(2, ndim))

    def _per_channel(self, v: np.ndarray, ndim: int) -> np.ndarray:
        # (C,) -> (1, C, 1, ...) for broadcasting against the input
        return v.reshape((1, self.num_features) + (1,) * (ndim - 2))

    def _normalize(
        self, xs: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Return (mean, var, inv_std, x_hat) for an input array shaped like x.
        """
        axes = self._reduce_axes(xs.ndim)
        mean = xs.mean(axis=axes, dtype=np.float32)
        centered = xs - self._per_channel(mean, xs.ndim)
        var = (centered * centered).mean(axis=axes, dtype=np.float32)
        inv_std = (1.0 / np.sqrt(var + np.float32(self.eps))).astype(np.float32)
        x_hat = centered * self._per_channel(inv_std, xs.ndim)
        return mean, var, inv_std, x_hat

    @property
    def num_batches_tracked(self) -> int:
        return int(self._batch_count.data[0])

    def _update_running_stats(self, mean: np.ndarray, var: np.ndarray) -> None:
        if self.num_batches_tracked == 0:
            logger.debug("%s: initializing running statistics", self.describe())
            self.running_mean.data = mean
            self.running_var.data = var
        else:
            m = np.float32(self.momentum)
            self.running_mean.data = (1 - m) * self.running_mean.data + m * mean
            self.running_var.data = (1 - m) * self.running_var.data + m * var
        self._batch_count.data[0] += 1

    def reset_running_stats(self) -> None:
        """
        Zero the running statistics; the next forward call sets them again.
        """
        if self.running_mean is not None and self.running_var is not None:
            self.running_mean.fill(0.0)
            self.running_var.fill(0.0)
        self._batch_count.fill(0.0)

    # ------------------------------------------------------------------
    # Forward / backward
    # ------------------------------------------------------------------
    def forward(self, x: Tensor, out: Optional[Tensor] = None) -> Tensor:
        """
        Normalize `x` per channel using batch statistics.

        Parameters
        ----------
        x : Tensor
            Input of the layer's expected rank with `num_features` channels
            on axis 1.
        out : Optional[Tensor]
            Destination tensor; allocated when omitted.

        Returns
        -------
        Tensor
            `out`, shaped like `x`.

        Raises
        ------
        ShapeError
            If the input rank or channel count is wrong, or `x.data` does not
            match `x.shape`.
        """
        self._check_layout(x, "input")
        _check_input(self, x)

        xs = x.data.reshape(x.shape)
        mean, var, _, x_hat = self._normalize(xs)

        if self.track_running_stats:
            self._update_running_stats(mean, var)

        if self.affine:
            y = self._per_channel(self.gamma.data, xs.ndim) * x_hat + self._per_channel(
                self.beta.data, xs.ndim
            )
        else:
            y = x_hat

        self._input_data = x.data.copy()
        self._input_shape = x.shape

        out = _prepare_output(out, x.shape)
        out.data = y
        return out

    def backward(self, out: Tensor, x: Tensor) -> Tensor:
        """
        Propagate `out.grad` into `x.grad` and accumulate gamma/beta gradients.

        Parameters
        ----------
        out : Tensor
            Gradient carrier shaped like the forward output, with `out.grad`
            populated.
        x : Tensor
            Receives the input gradient. It is reshaped to `out.shape` and its
            data and gradient buffers are sized.

        Returns
        -------
        Tensor
            `x`, with `x.grad` populated.

        Raises
        ------
        StateError
            If no forward pass has cached an input, the cached input does not
            match `out`'s shape, or parameter gradient buffers are missized.
        ShapeError
            If `out` has the wrong rank or channel count, or no gradient.
        """
        if self._input_data is None:
            raise StateError(
                f"{self.describe()}: no cached input; call forward() before backward()"
            )
        self._check_layout(out, "grad_output")
        _check_grad_output(self, out)
        if out.shape != self._input_shape:
            raise StateError(
                f"{self.describe()}: cached input shape {list(self._input_shape)} "
                f"does not match grad_output shape {list(out.shape)}"
            )
        if self.affine and (
            self.gamma.grad.size != self.num_features
            or self.beta.grad.size != self.num_features
        ):
            raise StateError(
                f"{self.describe()}: gamma/beta gradient buffers are not sized "
                f"to {self.num_features}"
            )

        xs = self._input_data.reshape(self._input_shape)
        _, _, inv_std, x_hat = self._normalize(xs)

        axes = self._reduce_axes(xs.ndim)
        count = np.float32(xs.size // self.num_features)

        dy = out.grad.reshape(out.shape)
        sum_dy = dy.sum(axis=axes, dtype=np.float32)
        sum_dy_xhat = (dy * x_hat).sum(axis=axes, dtype=np.float32)

        scale = inv_std * self.gamma.data if self.affine else inv_std
        dx = self._per_channel(scale, xs.ndim) * (
            dy
            - self._per_channel(sum_dy, xs.ndim) / count
            - x_hat * self._per_channel(sum_dy_xhat, xs.ndim) / count
        )

        _prepare_grad_input(x, out.shape)
        x.grad[...] = dx.reshape(-1)

        if self.affine:
            self.beta.grad[...] += sum_dy
            self.gamma.grad[...] += sum_dy_xhat
        return x

    # ------------------------------------------------------------------
    # Diagnostics / config
    # ------------------------------------------------------------------
    def describe(self) -> str:
        return f"{type(self).__name__}({self.num_features})"

    def get_config(self) -> Dict[str, Any]:
        """
        Return a JSON-serializable configuration for this layer.
        """
        return {
            "num_features": self.num_features,
            "eps": self.eps,
            "momentum": self.momentum,
            "affine": self.affine,
            "track_running_stats": self.track_running_stats,
        }

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]):
        return cls(
            num_features=int(cfg["num_features"]),
            eps=float(cfg.get("eps", 1e-5)),
            momentum=float(cfg.get("momentum", 0.1)),
            affine=bool(cfg.get("affine", True)),
            track_running_stats=bool(cfg.get("track_running_stats", True)),
        )


@register_layer()
class BatchNorm1d(_BatchNormNd):
    """
    Batch Normalization for 2D inputs of shape (N, C).

    Statistics are computed per feature over the batch dimension N.
    """

    _expected_rank = 2
    _layout = "[batch_size, num_features]"


@register_layer()
class BatchNorm2d(_BatchNormNd):
    """
    Batch Normalization for 4D inputs of shape (N, C, H, W).

    Statistics are computed per channel over (N, H, W).
    """

    _expected_rank = 4
    _layout = "[N, C, H, W]"


@register_layer()
class BatchNorm3d(_BatchNormNd):
    """
    Batch Normalization for 5D inputs of shape (N, C, D, H, W).

    Statistics are computed per channel over (N, D, H, W).
    """

    _expected_rank = 5
    _layout = "[N, C, D, H, W]"
