from .flow_serializer import deserialize, load_flow, read_flow, save_flow, serialize
from .schema import FlowDocument

__all__ = ["FlowDocument", "deserialize", "load_flow", "read_flow", "save_flow", "serialize"]
