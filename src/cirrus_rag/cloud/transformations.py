"""cirrus_rag.cloud.transformations

Configurable transformations executed by the managed platform during
ingestion, and the builder for pipeline-creation requests.

The platform runs the transformations remotely; locally they are only
descriptions that serialise to the platform's configurable-transformation
payload.

Classes
-------
EmbeddingTransformation
    OpenAI embedding step.
SentenceSplitterTransformation
    Sentence-aware chunking step.

Functions
---------
default_transformations
    The transformation list used when none is supplied.
to_transformation
    Normalise a supported transformation object.
build_pipeline_create
    Build a :class:`~cirrus_rag.common.schemas.PipelineCreateRequest`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Union

from llama_index.core.node_parser import SentenceSplitter
from llama_index.core.schema import Document

from cirrus_rag.common.schemas import MANAGED_PIPELINE_TYPE, PipelineCreateRequest


@dataclass(frozen=True)
class EmbeddingTransformation:
    """OpenAI embedding step run by the platform.

    Attributes
    ----------
    model_name : str
        Embedding model. Defaults to ``"text-embedding-3-small"``.
    api_key : str or None
        Provider key forwarded to the platform; ``None`` uses the platform's
        configured key.
    embed_batch_size : int
        Batch size for embedding calls. Defaults to ``10``.
    dimensions : int or None
        Optional output dimensionality.
    """

    model_name: str = "text-embedding-3-small"
    api_key: Optional[str] = None
    embed_batch_size: int = 10
    dimensions: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        component: dict[str, Any] = {
            "model_name": self.model_name,
            "embed_batch_size": self.embed_batch_size,
        }
        if self.api_key:
            component["api_key"] = self.api_key
        if self.dimensions is not None:
            component["dimensions"] = self.dimensions
        return {
            "configurable_transformation_type": "OPENAI_EMBEDDING",
            "component": component,
        }


@dataclass(frozen=True)
class SentenceSplitterTransformation:
    """Sentence-aware chunking step run by the platform."""

    chunk_size: int = 1024
    chunk_overlap: int = 200
    include_metadata: bool = True
    include_prev_next_rel: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "configurable_transformation_type": "SENTENCE_AWARE_NODE_PARSER",
            "component": {
                "chunk_size": self.chunk_size,
                "chunk_overlap": self.chunk_overlap,
                "include_metadata": self.include_metadata,
                "include_prev_next_rel": self.include_prev_next_rel,
            },
        }


Transformation = Union[EmbeddingTransformation, SentenceSplitterTransformation]


def default_transformations() -> list[Transformation]:
    """Return the default transformation list: a single embedding step."""
    return [EmbeddingTransformation()]


def to_transformation(obj: Any) -> Transformation:
    """Normalise a transformation object.

    Parameters
    ----------
    obj : Any
        A transformation dataclass from this module, or a ``llama_index``
        :class:`~llama_index.core.node_parser.SentenceSplitter`.

    Returns
    -------
    Transformation
        The platform-serialisable transformation.

    Raises
    ------
    TypeError
        If ``obj`` has no platform equivalent.
    """
    if isinstance(obj, (EmbeddingTransformation, SentenceSplitterTransformation)):
        return obj
    if isinstance(obj, SentenceSplitter):
        return SentenceSplitterTransformation(
            chunk_size=obj.chunk_size,
            chunk_overlap=obj.chunk_overlap,
            include_metadata=obj.include_metadata,
            include_prev_next_rel=obj.include_prev_next_rel,
        )
    raise TypeError(f"Unsupported transformation: {type(obj).__name__}")


def build_pipeline_create(
        *,
        name: str,
        documents: Sequence[Document],
        transformations: Optional[Iterable[Any]] = None,
        pipeline_type: str = MANAGED_PIPELINE_TYPE,
    ) -> PipelineCreateRequest:
    """Build an immutable pipeline-creation request.

    Parameters
    ----------
    name : str
        Pipeline name.
    documents : Sequence[Document]
        Input documents, in upload order.
    transformations : Iterable[Any] or None, optional
        Transformation steps. ``None`` selects :func:`default_transformations`.
    pipeline_type : str, optional
        Pipeline type. Defaults to ``"MANAGED"``.

    Returns
    -------
    PipelineCreateRequest
        The request.
    """
    steps = default_transformations() if transformations is None else transformations
    return PipelineCreateRequest(
        name=name,
        pipeline_type=pipeline_type,
        documents=tuple(documents),
        transformations=tuple(to_transformation(t) for t in steps),
    )


__all__ = [
    "EmbeddingTransformation",
    "SentenceSplitterTransformation",
    "Transformation",
    "default_transformations",
    "to_transformation",
    "build_pipeline_create",
]
