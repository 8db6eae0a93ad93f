"""
Tensor interface definitions.

This module defines the domain-level interface for tensor-like objects using
structural typing. A seqgrad tensor is deliberately simple: a shape, a flat
row-major data buffer and a parallel gradient buffer of the same size.

Notes
-----
The interface carries no reference to other tensors and no autograd graph.
Gradients are written explicitly by layers during a backward pass.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor interface.

    An `ITensor` represents an n-dimensional numeric buffer stored flat in
    row-major order. For a 4-D tensor shaped (N, C, H, W) the flat index of
    element (n, c, h, w) is ``((n * C + c) * H + h) * W + w``.

    Notes
    -----
    - An empty `shape` denotes the "uninitialized" state.
    - `data` has `size()` elements once `resize()` has run.
    - `grad` has `size()` elements once `resize_grad()` has run, and is empty
      before that.
    """

    shape: tuple[int, ...]
    data: Any
    grad: Any

    def validate_shape(self) -> bool:
        """
        Return True if the shape is non-empty and has no zero dimension.
        """
        ...

    def size(self) -> int:
        """
        Return the number of elements implied by `shape`.

        Raises
        ------
        ShapeError
            If the shape is empty or contains a zero dimension.
        """
        ...

    def resize(self) -> None:
        """
        Size the data buffer to `size()` elements, zero-filling new elements.
        """
        ...

    def resize_grad(self) -> None:
        """
        Size the gradient buffer to `size()` elements, zero-filling new elements.
        """
        ...

    def zero_grad(self) -> None:
        """
        Fill the gradient buffer with zeros.
        """
        ...
