"""cirrus_rag.synthesizers.nodes

Node classification and image conversion helpers for synthesis.

Classes
-------
NodeKind
    Closed set of content kinds a synthesizer handles.

Functions
---------
classify_node
    Return the kind of a node, rejecting anything unrecognised.
split_nodes_by_kind
    Partition nodes into text and image lists, preserving order.
image_to_data_url
    Encode an image node's payload as a base64 data URL.
aimage_to_data_url
    Run :func:`image_to_data_url` in the default executor.
"""

from __future__ import annotations

import asyncio
import base64
import mimetypes
from enum import Enum
from pathlib import Path
from typing import Iterable

import requests
from llama_index.core.schema import BaseNode, ImageNode, TextNode

from cirrus_rag.common.errors import UnsupportedNodeKindError

DEFAULT_IMAGE_MIMETYPE = "image/png"


class NodeKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


def classify_node(node: BaseNode) -> NodeKind:
    """Return the kind of ``node``.

    ``ImageNode`` is checked first because it subclasses ``TextNode``.

    Raises
    ------
    UnsupportedNodeKindError
        If ``node`` is neither an image node nor a text node.
    """
    if isinstance(node, ImageNode):
        return NodeKind.IMAGE
    if isinstance(node, TextNode):
        return NodeKind.TEXT
    raise UnsupportedNodeKindError(f"Cannot synthesize from node of type {type(node).__name__}")


def split_nodes_by_kind(nodes: Iterable[BaseNode]) -> tuple[list[TextNode], list[ImageNode]]:
    """Partition nodes into ``(text_nodes, image_nodes)``.

    Relative order within each list matches the input. Nodes are not copied
    or modified.
    """
    text_nodes: list[TextNode] = []
    image_nodes: list[ImageNode] = []
    for node in nodes:
        kind = classify_node(node)
        if kind is NodeKind.IMAGE:
            image_nodes.append(node)
        elif kind is NodeKind.TEXT:
            text_nodes.append(node)
    return text_nodes, image_nodes


def _data_url(data: bytes, mimetype: str) -> str:
    return f"data:{mimetype};base64,{base64.b64encode(data).decode('ascii')}"


def image_to_data_url(node: ImageNode, timeout: float = 30.0) -> str:
    """Encode the image carried by ``node`` as a data URL.

    Sources are tried in order: the inline base64 ``image`` field, then
    ``image_url`` (returned as is when already a data URL, otherwise
    downloaded), then ``image_path`` read from disk.

    Parameters
    ----------
    node : ImageNode
        Node holding the image.
    timeout : float, optional
        Download timeout in seconds for remote URLs.

    Returns
    -------
    str
        ``data:<mimetype>;base64,<payload>``.

    Raises
    ------
    ValueError
        If the node carries no image source.
    requests.HTTPError
        If downloading ``image_url`` fails.
    """
    mimetype = node.image_mimetype

    if node.image:
        return f"data:{mimetype or DEFAULT_IMAGE_MIMETYPE};base64,{node.image}"

    if node.image_url:
        if node.image_url.startswith("data:"):
            return node.image_url
        response = requests.get(node.image_url, timeout=timeout)
        response.raise_for_status()
        content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        guessed = mimetypes.guess_type(node.image_url)[0]
        return _data_url(response.content, mimetype or content_type or guessed or DEFAULT_IMAGE_MIMETYPE)

    if node.image_path:
        path = Path(node.image_path)
        guessed = mimetypes.guess_type(path.name)[0]
        return _data_url(path.read_bytes(), mimetype or guessed or DEFAULT_IMAGE_MIMETYPE)

    raise ValueError(f"Image node {node.node_id} has no image, image_url or image_path")


async def aimage_to_data_url(node: ImageNode) -> str:
    """Asynchronously encode an image node; the work runs in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, image_to_data_url, node)


__all__ = [
    "NodeKind",
    "classify_node",
    "split_nodes_by_kind",
    "image_to_data_url",
    "aimage_to_data_url",
]
