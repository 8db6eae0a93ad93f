"""
Sequential model container.

This module defines `Model`, an ordered pipeline of layers that threads a
single input through each layer in turn:

    y = L_n(...L_2(L_1(x)))

and mirrors that traversal on the way back.

Activation cache
----------------
A model with n layers keeps n - 1 intermediate tensors. Layer i writes its
output into cache slot i (the last layer writes into the caller's output
tensor). Backward hands layer i its downstream tensor (cache slot i, or the
caller's output for the last layer) and the upstream tensor it must fill
(cache slot i - 1, or the caller's input for the first layer). Because the
cache slots hold the forward outputs, activations can derive their local
gradient from them directly.

The cache is only valid right after a forward call with the current layer
count; `backward` raises `StateError` otherwise.

Notes
-----
- `Model` is itself a `Layer`, so it exposes the same forward/backward
  contract and can be serialized through the layer registry.
- Checkpointing (`save_json` / `load_json`) writes the architecture tree and
  base64-encoded parameter and running-statistics payloads into one file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ...domain._errors import StateError
from .._layer import Layer
from ..module._serialization_core import (
    layer_from_config,
    layer_to_config,
    register_layer,
)
from ..module._serialization_weights import extract_state_payload, load_state_payload_
from ..tensor._tensor import Tensor

logger = logging.getLogger(__name__)

CHECKPOINT_FORMAT = "seqgrad.json.ckpt.v1"


@register_layer()
class Model(Layer):
    """
    Ordered pipeline of layers with a forward pass and a mirrored backward pass.

    Parameters
    ----------
    *layers : Layer
        Zero or more layers appended in order via `add_layer`.
    """

    def __init__(self, *layers: Layer) -> None:
        super().__init__()
        self._layers: List[Layer] = []
        self._activations: Optional[List[Tensor]] = None
        for layer in layers:
            self.add_layer(layer)

    def add_layer(self, layer: Layer) -> None:
        """
        Append a layer to the end of the pipeline.

        Raises
        ------
        TypeError
            If `layer` is not a `Layer`.
        """
        if not isinstance(layer, Layer):
            raise TypeError(f"Model.add_layer expects a Layer, got: {type(layer)}")
        self._layers.append(layer)

    def forward(self, x: Tensor, out: Optional[Tensor] = None) -> Tensor:
        """
        Run every layer in order, caching intermediate outputs.

        Parameters
        ----------
        x : Tensor
            Input to the first layer.
        out : Optional[Tensor]
            Destination for the last layer's output; allocated when omitted.

        Returns
        -------
        Tensor
            `out`, holding the model output.

        Raises
        ------
        StateError
            If the model has no layers.
        """
        if not self._layers:
            raise StateError("Model.forward called on a model with no layers")
        if out is None:
            out = Tensor()

        n = len(self._layers)
        acts = [Tensor() for _ in range(n - 1)]

        # the cache is published only once every layer has succeeded
        self._activations = None
        current = x
        for i, layer in enumerate(self._layers):
            dst = acts[i] if i < n - 1 else out
            current = layer.forward(current, dst)
        self._activations = acts

        logger.debug("Model forward: %d layers, output shape %s", n, list(out.shape))
        return out

    def backward(self, out: Tensor, x: Tensor) -> Tensor:
        """
        Walk the layers in reverse, propagating `out.grad` into `x.grad`.

        Parameters
        ----------
        out : Tensor
            The output passed to the matching `forward`, with `out.grad` set to
            the gradient of the loss with respect to the output.
        x : Tensor
            The input passed to the matching `forward`; receives the input
            gradient.

        Returns
        -------
        Tensor
            `x`, with `x.grad` populated.

        Raises
        ------
        StateError
            If no forward pass has completed (including when the last one
            raised), or the activation cache does not hold exactly
            `len(self) - 1` tensors.
        """
        n = len(self._layers)
        cached = -1 if self._activations is None else len(self._activations)
        if n == 0 or cached != n - 1:
            raise StateError(
                f"Model.backward requires a matching forward pass: expected "
                f"{max(n - 1, 0)} cached activations, found {max(cached, 0)}"
            )

        acts = self._activations
        for i in range(n - 1, -1, -1):
            downstream = out if i == n - 1 else acts[i]
            upstream = x if i == 0 else acts[i - 1]
            self._layers[i].backward(downstream, upstream)

        logger.debug("Model backward: %d layers", n)
        return x

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    def parameters(self) -> List[Tensor]:
        """
        Return every layer's parameters, concatenated in layer order.
        """
        params: List[Tensor] = []
        for layer in self._layers:
            params.extend(layer.parameters())
        return params

    def named_parameters(self, prefix: str = "") -> Iterator[Tuple[str, Tensor]]:
        """
        Yield (name, parameter) pairs keyed by layer index, e.g. "0.weight".
        """
        base = prefix + "." if prefix else ""
        for i, layer in enumerate(self._layers):
            yield from layer.named_parameters(f"{base}{i}")

    def named_buffers(self, prefix: str = "") -> Iterator[Tuple[str, Tensor]]:
        base = prefix + "." if prefix else ""
        for i, layer in enumerate(self._layers):
            yield from layer.named_buffers(f"{base}{i}")

    def zero_grad(self) -> None:
        for layer in self._layers:
            layer.zero_grad()

    # ------------------------------------------------------------------
    # Container protocol / diagnostics
    # ------------------------------------------------------------------
    @property
    def activations(self) -> Tuple[Tensor, ...]:
        """
        The cached intermediate tensors from the last forward pass.
        """
        return tuple(self._activations or ())

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __getitem__(self, idx: int) -> Layer:
        return self._layers[idx]

    def layers(self) -> Tuple[Layer, ...]:
        return tuple(self._layers)

    def describe(self) -> str:
        """
        Return each layer's description on its own line.
        """
        return "".join(f"{layer.describe()}\n" for layer in self._layers)

    def summary(self) -> str:
        """
        Return a short listing of layers with their parameter counts.

        Notes
        -----
        No shape inference is performed; counts come from the parameter
        tensors' shapes.
        """
        lines = [f"{self.__class__.__name__}("]
        total = 0
        for i, layer in enumerate(self._layers):
            count = sum(p.size() for p in layer.parameters())
            total += count
            lines.append(f"  ({i}): {layer.describe()}  params={count}")
        lines.append(f")  total params={total}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.summary()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def get_config(self) -> Dict[str, Any]:
        # children are stored by the serializer under "layers"
        return {}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "Model":
        _ = cfg
        return cls()

    def save_json(self, path: str | Path) -> None:
        """
        Save model architecture, parameters and running statistics into a
        single JSON file.

        Parameters
        ----------
        path : str | Path
            Output JSON file path, e.g. "checkpoint.json".

        Format
        ------
        {
          "format": "seqgrad.json.ckpt.v1",
          "arch": {"type": "Model", "config": {}, "layers": [...]},
          "state": {
            "0.weight": {"b64": "...", "dtype": "<f4", "shape": [...]},
            ...
          }
        }
        """
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            "format": CHECKPOINT_FORMAT,
            "arch": layer_to_config(self),
            "state": extract_state_payload(self),
        }

        p.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        logger.debug("Saved %d-layer model checkpoint to %s", len(self), p)

    @classmethod
    def load_json(cls, path: str | Path) -> "Model":
        """
        Load a model from a JSON checkpoint created by `save_json()`.

        Raises
        ------
        ValueError
            If the checkpoint format is unsupported.
        KeyError
            If a parameter or buffer is missing from the checkpoint.
        TypeError
            If the reconstructed object is not an instance of `cls`.
        """
        p = Path(path)
        payload = json.loads(p.read_text(encoding="utf-8"))

        fmt = payload.get("format")
        if fmt != CHECKPOINT_FORMAT:
            raise ValueError(f"Unsupported checkpoint format: {fmt!r}")

        model = layer_from_config(payload["arch"])
        if not isinstance(model, cls):
            raise TypeError(
                f"Loaded object is {type(model).__name__}, expected {cls.__name__}."
            )

        load_state_payload_(model, payload["state"])

        logger.debug("Loaded %d-layer model checkpoint from %s", len(model), p)
        return model
