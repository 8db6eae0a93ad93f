"""
NumPy-backed Tensor implementation.

This module provides the concrete `Tensor` used throughout seqgrad. A tensor
is a value object holding:

- `shape`: a tuple of positive dimension sizes (empty means uninitialized)
- `data`: a flat, row-major `float32` buffer
- `grad`: a flat `float32` buffer of the same length, empty until
  `resize_grad()` is called

Design notes
------------
- Buffers are plain flat NumPy arrays. Layers reshape them into views with
  `to_numpy()`-style helpers when they need n-dimensional indexing.
- `resize()` and `resize_grad()` follow vector-resize semantics: existing
  leading values are preserved and any new elements are zero-filled.
- Assigning a sequence to `data` or `grad` stores a flat `float32` copy, so
  callers can write ``t.data = [0.1, 0.2]`` directly.
- A tensor holds no reference to other tensors and carries no autograd graph.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

import numpy as np

from ...domain._errors import ShapeError

_PREVIEW_LIMIT = 5


def _as_flat_f32(values: Any) -> np.ndarray:
    """
    Convert an array-like into a flat, contiguous `float32` array (copy).
    """
    arr = np.array(values, dtype=np.float32, copy=True)
    return np.ascontiguousarray(arr.reshape(-1))


def _preview(values: Sequence[Any], limit: int = _PREVIEW_LIMIT) -> str:
    """
    Render at most `limit` elements of `values`, then an ellipsis marker.
    """
    n = len(values)
    shown = [_fmt(v) for v in values[: min(limit, n)]]
    if n > limit:
        shown.append("...")
    return "[" + ", ".join(shown) + "]"


def _fmt(v: Any) -> str:
    if isinstance(v, (int, np.integer)):
        return str(int(v))
    return f"{float(v):g}"


def _resized(buf: np.ndarray, n: int) -> np.ndarray:
    if buf.size == n:
        return buf
    out = np.zeros(n, dtype=np.float32)
    k = min(n, buf.size)
    out[:k] = buf[:k]
    return out


class Tensor:
    """
    n-dimensional float32 buffer with a parallel gradient buffer.

    Parameters
    ----------
    shape : Iterable[int], optional
        Dimension sizes. When given and valid, the data buffer is allocated
        (zero-filled) immediately. Defaults to the uninitialized state.
    data : array-like, optional
        Initial contents, stored flat in row-major order. Its length is not
        validated against `shape` until a layer consumes the tensor.

    Attributes
    ----------
    shape : tuple[int, ...]
        Dimension sizes; `()` denotes an uninitialized tensor.
    data : np.ndarray
        Flat float32 value buffer.
    grad : np.ndarray
        Flat float32 gradient buffer (empty until `resize_grad()`).

    Examples
    --------
    >>> t = Tensor(shape=(2, 3))
    >>> t.size()
    6
    >>> t.resize_grad(); t.zero_grad()
    """

    __slots__ = ("shape", "_data", "_grad")

    def __init__(
        self,
        shape: Iterable[int] = (),
        data: Any = None,
    ) -> None:
        self.shape = tuple(int(d) for d in shape)
        self._data = np.zeros(0, dtype=np.float32)
        self._grad = np.zeros(0, dtype=np.float32)

        if data is not None:
            self.data = data
        elif self.validate_shape():
            self.resize()

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------
    @property
    def data(self) -> np.ndarray:
        """Flat float32 value buffer."""
        return self._data

    @data.setter
    def data(self, values: Any) -> None:
        self._data = _as_flat_f32(values)

    @property
    def grad(self) -> np.ndarray:
        """Flat float32 gradient buffer; empty until `resize_grad()` runs."""
        return self._grad

    @grad.setter
    def grad(self, values: Any) -> None:
        self._grad = _as_flat_f32(values)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    # ------------------------------------------------------------------
    # Sizing
    # ------------------------------------------------------------------
    def validate_shape(self) -> bool:
        """
        Return True if `shape` is non-empty and contains no zero dimension.
        """
        if not self.shape:
            return False
        return all(d > 0 for d in self.shape)

    def size(self) -> int:
        """
        Return the number of elements implied by `shape`.

        Raises
        ------
        ShapeError
            If `shape` is empty or contains a non-positive dimension.
        """
        if not self.validate_shape():
            raise ShapeError(f"Invalid tensor shape: {list(self.shape)}", self.shape)
        total = 1
        for d in self.shape:
            total *= d
        return total

    def resize(self) -> None:
        """
        Size `data` to `size()` elements, zero-filling any new elements.
        """
        self._data = _resized(self._data, self.size())

    def resize_grad(self) -> None:
        """
        Size `grad` to `size()` elements, zero-filling any new elements.
        """
        self._grad = _resized(self._grad, self.size())

    def zero_grad(self) -> None:
        """
        Fill the gradient buffer with zeros.
        """
        self._grad.fill(0.0)

    def has_grad(self) -> bool:
        return self._grad.size > 0

    # ------------------------------------------------------------------
    # Construction / NumPy interop
    # ------------------------------------------------------------------
    @classmethod
    def from_numpy(cls, arr: Any) -> "Tensor":
        """
        Create a tensor whose shape and data are taken from `arr`.

        Parameters
        ----------
        arr : array-like
            Source values. Converted to float32.

        Returns
        -------
        Tensor
            A new tensor owning a flat copy of `arr`.
        """
        a = np.asarray(arr, dtype=np.float32)
        return cls(shape=a.shape, data=a)

    @classmethod
    def zeros(cls, shape: Iterable[int]) -> "Tensor":
        return cls(shape=shape)

    @classmethod
    def full(cls, shape: Iterable[int], value: float) -> "Tensor":
        t = cls(shape=shape)
        t.fill(value)
        return t

    def copy_from_numpy(self, arr: Any) -> None:
        """
        Overwrite shape and data with the contents of `arr`.
        """
        a = np.asarray(arr, dtype=np.float32)
        self.shape = tuple(int(d) for d in a.shape)
        self.data = a

    def to_numpy(self) -> np.ndarray:
        """
        Return a copy of `data` reshaped to `shape`.

        Raises
        ------
        ShapeError
            If the shape is invalid or does not match the buffer length.
        """
        self._check_buffer(self._data, "data")
        return self._data.reshape(self.shape).copy()

    def grad_to_numpy(self) -> np.ndarray:
        """
        Return a copy of `grad` reshaped to `shape`.
        """
        self._check_buffer(self._grad, "grad")
        return self._grad.reshape(self.shape).copy()

    def fill(self, value: float) -> None:
        self.resize()
        self._data.fill(value)

    def fill_grad(self, value: float) -> None:
        self.resize_grad()
        self._grad.fill(value)

    def _check_buffer(self, buf: np.ndarray, name: str) -> None:
        n = self.size()
        if buf.size != n:
            raise ShapeError(
                f"Tensor {name} has {buf.size} elements, shape {list(self.shape)} "
                f"requires {n}",
                self.shape,
            )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def __repr__(self) -> str:
        head = f"Tensor@{id(self):#x}"
        if not self.shape:
            return head + "(not initialized)"

        parts = [f"shape={_preview(self.shape)}"]
        if self._data.size:
            parts.append(f"data={_preview(self._data)}")
        else:
            parts.append("data=[no data]")
        if self._grad.size:
            parts.append(f"grad={_preview(self._grad)}")
        return head + "(" + ", ".join(parts) + ")"

    __str__ = __repr__
