"""
Layer interface definitions.

This module defines the domain-level interface for layers using structural
subtyping via `typing.Protocol`.

Any object that implements `forward`, `backward`, `describe` and `parameters`
with the signatures below is considered a valid layer and can be chained by
a `Model`.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

from ._tensor import ITensor


@runtime_checkable
class ILayer(Protocol):
    """
    Domain-level layer interface.

    A layer is a single differentiable transformation. It never owns its input
    or output tensors: both are supplied by the caller (the `Model`, in
    practice), and the layer writes its results into them.

    Notes
    -----
    - `backward` consumes the gradient stored in `out.grad`, writes the
      gradient with respect to the layer input into `x.grad`, and accumulates
      into the layer's own parameter gradients.
    - A backward call is only meaningful after a forward call that produced
      `out` from `x`.
    """

    def forward(self, x: ITensor, out: Optional[ITensor] = None) -> ITensor:
        """
        Compute the layer output for `x`.

        Parameters
        ----------
        x : ITensor
            Input tensor.
        out : Optional[ITensor]
            Destination tensor. A fresh tensor is allocated when omitted.

        Returns
        -------
        ITensor
            The populated output tensor.
        """
        ...

    def backward(self, out: ITensor, x: ITensor) -> ITensor:
        """
        Propagate the gradient held by `out` back into `x`.

        Parameters
        ----------
        out : ITensor
            The tensor produced by `forward`, with `out.grad` populated.
        x : ITensor
            The tensor that was passed to `forward`; its `grad` is written.

        Returns
        -------
        ITensor
            `x`, with its gradient buffer populated.
        """
        ...

    def describe(self) -> str:
        """
        Return a human-readable identity string (type name and dimensions).
        """
        ...

    def parameters(self) -> Sequence[ITensor]:
        """
        Return the trainable tensors owned by this layer.

        Returns
        -------
        Sequence[ITensor]
            Parameter tensors in a stable order; empty for activation layers.
        """
        ...
