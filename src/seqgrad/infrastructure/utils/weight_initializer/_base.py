"""
Named parameter initializers.

Parameterized layers never fill their tensors directly. They look up an
initializer by name and apply it:

    WeightInitializer("uniform")(layer.weight, low=-0.1, high=0.1, rng=rng)

Initializer functions take the target tensor as their first argument, fill
its data buffer (sizing it from `tensor.shape`), and return the same tensor.
They are added to the table with `@WeightInitializer.register_initializer`.
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, TypeVar

from ...tensor._tensor import Tensor

InitFn = Callable[..., Tensor]
F = TypeVar("F", bound=InitFn)


class WeightInitializer:
    """
    Resolves an initializer name once and applies it on call.

    Parameters
    ----------
    initializer_name : str
        A key of `INITIALIZERS`.

    Raises
    ------
    ValueError
        If no initializer is registered under `initializer_name`.
    """

    INITIALIZERS: ClassVar[Dict[str, InitFn]] = {}

    def __init__(self, initializer_name: str) -> None:
        fn = self.INITIALIZERS.get(initializer_name)
        if fn is None:
            known = ", ".join(self.available()) or "<none>"
            raise ValueError(
                f"No initializer named {initializer_name!r} (known: {known})"
            )
        self.name = initializer_name
        self._fn = fn

    @classmethod
    def register_initializer(
        cls, name: str, *, overwrite: bool = False
    ) -> Callable[[F], F]:
        """
        Decorator adding a function to the table under `name`.

        A name can only be taken once unless `overwrite` is set.
        """
        if not name:
            raise ValueError("Initializer name must be a non-empty string")

        def decorator(fn: F) -> F:
            if name in cls.INITIALIZERS and not overwrite:
                raise ValueError(f"Initializer {name!r} is already registered")
            cls.INITIALIZERS[name] = fn
            return fn

        return decorator

    @classmethod
    def available(cls) -> tuple[str, ...]:
        return tuple(sorted(cls.INITIALIZERS))

    def __call__(self, tensor: Tensor, *args: Any, **kwargs: Any) -> Tensor:
        return self._fn(tensor, *args, **kwargs)

    def __repr__(self) -> str:
        return f"WeightInitializer({self.name!r})"
