"""
Shape- and state-related exceptions for seqgrad.

This module defines the two error kinds raised by the computation engine:

- `ShapeError` signals an invalid or mismatched tensor shape, rank, feature
  count or element count.
- `StateError` signals an operation invoked out of its required order, such
  as a backward pass without a matching forward pass.

Both errors are raised synchronously at the point where the precondition is
violated and are never recovered internally.
"""


class ShapeError(ValueError):
    """
    Raised when a tensor shape is malformed or does not match expectations.

    Typical triggers
    ----------------
    - `Tensor.size()` on an empty shape or a shape containing a zero dimension
    - a layer receiving an input of the wrong rank or channel count
    - `mse_loss` receiving tensors with different element counts
    - a gradient tensor whose `grad` buffer has not been sized

    Attributes
    ----------
    shape : tuple[int, ...] | None
        The offending shape, when one is available.
    """

    def __init__(self, message: str, shape=None) -> None:
        """
        Initialize the ShapeError.

        Parameters
        ----------
        message : str
            Human-readable description of the violated shape requirement.
        shape : tuple[int, ...] | None, optional
            The offending shape, if known.
        """
        super().__init__(message)
        self.shape = tuple(shape) if shape is not None else None


class StateError(RuntimeError):
    """
    Raised when an operation is invoked out of its required order.

    Examples include calling `Model.backward` before `Model.forward`, calling
    a BatchNorm layer's `backward` before any `forward`, or calling backward
    with cached buffers that belong to a different input size.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
