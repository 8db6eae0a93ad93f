"""
Infrastructure layer base class.

This module provides a concrete `Layer` implementation that satisfies the
domain-level `ILayer` protocol. It implements the conveniences shared by all
layer variants:

- parameter and buffer registration and storage
- ordered parameter traversal (`parameters`, `named_parameters`)
- gradient reset (`zero_grad`)
- `__call__` forwarding to `forward`
- output/gradient buffer preparation helpers used by subclasses

This class is intended to be subclassed by the concrete layers (Linear, the
pointwise activations and the BatchNorm family).
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..domain._errors import ShapeError
from ..domain._layer import ILayer
from .tensor._tensor import Tensor


class Layer(ILayer):
    """
    Infrastructure base class for layers.

    Subclasses typically:
    - create parameter `Tensor`s and register them via `register_parameter`,
    - register non-trainable state (running statistics) via `register_buffer`,
    - implement `forward`, `backward` and `describe`.

    Attributes
    ----------
    _parameters : Dict[str, Tensor]
        Mapping from parameter name to trainable tensor, in registration order.
    _buffers : Dict[str, Optional[Tensor]]
        Mapping from buffer name to non-trainable tensor.
    """

    def __init__(self) -> None:
        self._parameters: Dict[str, Tensor] = {}
        self._buffers: Dict[str, Optional[Tensor]] = {}

    def register_parameter(self, name: str, param: Optional[Tensor]) -> None:
        """
        Register a trainable tensor with this layer.

        Parameters
        ----------
        name : str
            Name under which the parameter will be stored (e.g. "weight").
        param : Optional[Tensor]
            Tensor to register. If None, registration is skipped.

        Notes
        -----
        This also sets the attribute on the layer so `self.<name>` works.
        """
        if param is None:
            return
        self._parameters[name] = param
        setattr(self, name, param)

    def register_buffer(self, name: str, buf: Optional[Tensor]) -> None:
        """
        Register a non-trainable tensor (e.g. running statistics).

        A None buffer is still recorded so that `self.<name>` exists.
        """
        self._buffers[name] = buf
        setattr(self, name, buf)

    def parameters(self) -> List[Tensor]:
        """
        Return this layer's trainable tensors in registration order.
        """
        return list(self._parameters.values())

    def named_parameters(self, prefix: str = "") -> Iterator[Tuple[str, Tensor]]:
        """
        Return an iterator over (name, parameter) pairs.

        Parameters
        ----------
        prefix : str
            Prefix to prepend to parameter names (used by `Model`).
        """
        base = prefix + "." if prefix else ""
        for name, p in self._parameters.items():
            yield (f"{base}{name}", p)

    def named_buffers(self, prefix: str = "") -> Iterator[Tuple[str, Tensor]]:
        """
        Return an iterator over (name, buffer) pairs, skipping absent buffers.
        """
        base = prefix + "." if prefix else ""
        for name, b in self._buffers.items():
            if b is not None:
                yield (f"{base}{name}", b)

    def zero_grad(self) -> None:
        """
        Zero the gradient of every parameter whose gradient buffer is sized.
        """
        for p in self._parameters.values():
            if p.has_grad():
                p.zero_grad()

    def forward(self, x: Tensor, out: Optional[Tensor] = None) -> Tensor:
        raise NotImplementedError

    def backward(self, out: Tensor, x: Tensor) -> Tensor:
        raise NotImplementedError

    def describe(self) -> str:
        return f"{type(self).__name__}()"

    def __call__(self, x: Tensor, out: Optional[Tensor] = None) -> Tensor:
        return self.forward(x, out)

    def __repr__(self) -> str:
        return self.describe()

    # ------------------------------------------------------------------
    # Serialization hooks (opt-in contract)
    # ------------------------------------------------------------------
    def get_config(self) -> Dict[str, Any]:
        """
        Return a JSON-serializable configuration for this layer.

        Raises
        ------
        NotImplementedError
            If the layer does not support serialization.
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} does not implement get_config(). "
            "This layer cannot be serialized to JSON."
        )

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Layer":
        raise NotImplementedError(
            f"{cls.__name__} does not implement from_config(). "
            "This layer cannot be deserialized from JSON."
        )


def _check_input(layer: Layer, x: Tensor) -> None:
    """
    Validate that `x` has a usable shape and a data buffer matching it.

    Raises
    ------
    ShapeError
        If the shape is invalid or `x.data` does not have `x.size()` elements.
    """
    n = x.size()
    if x.data.size != n:
        raise ShapeError(
            f"{layer.describe()}: input data has {x.data.size} elements, "
            f"shape {list(x.shape)} requires {n}",
            x.shape,
        )


def _check_grad_output(layer: Layer, out: Tensor) -> None:
    """
    Validate that `out` carries a gradient buffer matching its shape.

    Raises
    ------
    ShapeError
        If the gradient buffer is absent or has the wrong length.
    """
    n = out.size()
    if not out.has_grad():
        raise ShapeError(
            f"{layer.describe()}: grad_output has no gradient buffer; "
            "call resize_grad() and populate it before backward",
            out.shape,
        )
    if out.grad.size != n:
        raise ShapeError(
            f"{layer.describe()}: grad_output gradient has {out.grad.size} "
            f"elements, shape {list(out.shape)} requires {n}",
            out.shape,
        )


def _prepare_output(out: Optional[Tensor], shape: Tuple[int, ...]) -> Tensor:
    """
    Return `out` (or a new tensor) shaped `shape` with a sized data buffer.
    """
    if out is None:
        out = Tensor()
    out.shape = tuple(shape)
    out.resize()
    return out


def _prepare_grad_input(x: Tensor, shape: Tuple[int, ...]) -> None:
    """
    Shape `x` like `shape` and size both of its buffers.
    """
    x.shape = tuple(shape)
    x.resize()
    x.resize_grad()
