"""
Parameter and buffer state (de)serialization.

Every named parameter and buffer of a model (``"0.weight"``,
``"1.running_mean"``, ...) is stored as a JSON-safe record:

    {"b64": "<base64 of little-endian float32 bytes>", "dtype": "<f4", "shape": [...]}

and loaded back in-place by name.
"""

from __future__ import annotations

import base64
from typing import Any, Dict, Iterator, Tuple

import numpy as np

from ..tensor._tensor import Tensor

_DTYPE = np.dtype("<f4")


def tensor_to_payload(t: Tensor) -> Dict[str, Any]:
    """
    Encode a tensor's data as a base64 float32 record.
    """
    arr = t.to_numpy().astype(_DTYPE, copy=False)
    return {
        "b64": base64.b64encode(arr.tobytes(order="C")).decode("ascii"),
        "dtype": _DTYPE.str,
        "shape": list(arr.shape),
    }


def payload_to_array(payload: Dict[str, Any]) -> np.ndarray:
    """
    Decode a record produced by `tensor_to_payload` into an owning array.
    """
    raw = base64.b64decode(str(payload["b64"]).encode("ascii"))
    shape = tuple(int(d) for d in payload["shape"])
    arr = np.frombuffer(raw, dtype=np.dtype(str(payload["dtype"])))
    return arr.reshape(shape).astype(np.float32)


def _named_state(model: Any) -> Iterator[Tuple[str, Tensor]]:
    yield from model.named_parameters()
    named_buffers = getattr(model, "named_buffers", None)
    if callable(named_buffers):
        yield from named_buffers()


def extract_state_payload(model: Any) -> Dict[str, Dict[str, Any]]:
    """
    Encode every parameter and buffer of `model`, keyed by name.
    """
    return {str(name): tensor_to_payload(t) for name, t in _named_state(model)}


def load_state_payload_(model: Any, payloads: Dict[str, Dict[str, Any]]) -> None:
    """
    In-place load of parameters and buffers from encoded records.

    Raises
    ------
    KeyError
        If a parameter or buffer key is missing in the checkpoint.
    ValueError
        If a stored dtype is not little-endian float32, or a stored shape does
        not match the model's tensor shape.
    """
    for name, t in _named_state(model):
        if name not in payloads:
            raise KeyError(f"Missing tensor in checkpoint: '{name}'")

        dtype = str(payloads[name].get("dtype"))
        if dtype != _DTYPE.str:
            raise ValueError(
                f"Unsupported dtype for '{name}': {dtype!r} (expected {_DTYPE.str!r})"
            )

        arr = payload_to_array(payloads[name])
        if arr.shape != t.shape:
            raise ValueError(
                f"Shape mismatch for '{name}': model {list(t.shape)} "
                f"vs checkpoint {list(arr.shape)}"
            )
        t.data = arr
