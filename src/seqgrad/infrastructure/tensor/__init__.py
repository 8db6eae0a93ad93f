"""
Tensor package public API.

Re-exports the NumPy-backed `Tensor` so callers can write
``from seqgrad.infrastructure.tensor import Tensor``.
"""

from ._tensor import Tensor

__all__ = [
    Tensor.__name__,
]
