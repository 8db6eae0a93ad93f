"""
Weight initialization.

Importing this package registers ``zeros``, ``ones`` and ``uniform`` with
`WeightInitializer`.
"""

from ._base import WeightInitializer
from ._fill import ones, zeros
from ._uniform import uniform

__all__ = [
    WeightInitializer.__name__,
    "zeros",
    "ones",
    "uniform",
]
