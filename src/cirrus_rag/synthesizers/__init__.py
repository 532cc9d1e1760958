"""
Response synthesizers.

Submodules
----------
nodes
    Node kind classification and image-to-data-URL conversion.
multi_modal
    Synthesizer combining text and image context into one prompt.
"""

from .multi_modal import MultiModalResponseSynthesizer
from .nodes import NodeKind, classify_node, split_nodes_by_kind

__all__ = [
    "MultiModalResponseSynthesizer",
    "NodeKind",
    "classify_node",
    "split_nodes_by_kind",
]
