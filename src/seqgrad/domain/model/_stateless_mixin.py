"""
Configuration hooks for hyperparameter-free layers.

ReLU, Sigmoid and Tanh are fully determined by their class, so their
checkpoint config is empty and rebuilding one needs no arguments.
"""

from typing import Any, Dict
from typing_extensions import Self


class StatelessConfigMixin:
    """
    Mixin giving a layer an empty `get_config` and a no-argument
    `from_config`.
    """

    def get_config(self) -> Dict[str, Any]:
        return {}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> Self:
        """
        Build a default instance; `cfg` carries nothing for these layers.
        """
        return cls()
