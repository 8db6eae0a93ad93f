from ._model import CHECKPOINT_FORMAT, Model

__all__ = [
    Model.__name__,
    "CHECKPOINT_FORMAT",
]
