"""
Layer registry and architecture (de)serialization.

Layer classes register themselves by name with `@register_layer()` so that a
model architecture can be written as a JSON-safe tree and rebuilt later.

Node format
-----------
{
  "type": "Linear",
  "config": {...},
  "layers": [<node>, <node>, ...]    # containers only
}
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Type

_LAYER_REGISTRY: Dict[str, Type[Any]] = {}


def register_layer(name: Optional[str] = None) -> Callable[[Type[Any]], Type[Any]]:
    """
    Decorator to register a Layer (or container) class for deserialization.
    """

    def deco(cls: Type[Any]) -> Type[Any]:
        key = name or cls.__name__
        _LAYER_REGISTRY[key] = cls
        return cls

    return deco


def registered_layers() -> tuple[str, ...]:
    return tuple(sorted(_LAYER_REGISTRY))


def layer_to_config(m: Any) -> Dict[str, Any]:
    """
    Convert a layer or container into a JSON-serializable configuration tree.
    """
    node: Dict[str, Any] = {"type": m.__class__.__name__, "config": m.get_config()}

    children = getattr(m, "_layers", None)
    if isinstance(children, list):
        node["layers"] = [layer_to_config(child) for child in children]

    return node


def layer_from_config(node: Dict[str, Any]) -> Any:
    """
    Rebuild a layer or container from a configuration tree.

    Raises
    ------
    ValueError
        If the node names an unregistered type, or lists children for a type
        that cannot hold them.
    """
    type_name = str(node["type"])
    if type_name not in _LAYER_REGISTRY:
        raise ValueError(
            f"Unknown layer type '{type_name}'. Register it via @register_layer."
        )

    cls = _LAYER_REGISTRY[type_name]
    m = cls.from_config(node.get("config", {}) or {})

    children = node.get("layers", []) or []
    if children:
        add = getattr(m, "add_layer", None)
        if not callable(add):
            raise ValueError(f"Layer '{type_name}' cannot accept child layers.")
        for child_node in children:
            add(layer_from_config(child_node))

    return m
