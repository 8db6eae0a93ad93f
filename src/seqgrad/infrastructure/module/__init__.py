from ._serialization_core import (
    layer_from_config,
    layer_to_config,
    register_layer,
    registered_layers,
)
from ._serialization_weights import (
    extract_state_payload,
    load_state_payload_,
    payload_to_array,
    tensor_to_payload,
)

__all__ = [
    "register_layer",
    "registered_layers",
    "layer_to_config",
    "layer_from_config",
    "extract_state_payload",
    "load_state_payload_",
    "tensor_to_payload",
    "payload_to_array",
]
