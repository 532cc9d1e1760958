"""cirrus_rag.common.schemas

Core value types shared by the cloud index client and the synthesizers.

These frozen dataclasses describe the canonical shapes passed between index
creation, ingestion polling and prompt assembly. Documents and nodes
themselves are ``llama_index`` schema objects and are not redefined here.

Classes
-------
PipelineCreateRequest
    Immutable description of a managed pipeline to create or update.
IngestionStatus
    Normalised state of a managed ingestion run.
IngestionRun
    Identifier and status of one managed ingestion run.
TextPart
    Textual part of a multi-part prompt.
ImagePart
    Inline image reference part of a multi-part prompt.

Notes
-----
Remote payload keys use the platform's snake_case field names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Sequence, TypeAlias, Union

from llama_index.core.schema import Document

MANAGED_PIPELINE_TYPE = "MANAGED"


@dataclass(frozen=True)
class PipelineCreateRequest:
    """Immutable description of a managed pipeline.

    Attributes
    ----------
    name : str
        Pipeline name; also used later to look the pipeline up for retrieval.
    pipeline_type : str
        Pipeline type. Index creation always uses ``"MANAGED"``.
    documents : tuple[Document, ...]
        Input documents to upload to the pipeline.
    transformations : tuple[Any, ...]
        Transformation configurations. Each item must expose ``to_payload()``.
    """

    name: str
    pipeline_type: str = MANAGED_PIPELINE_TYPE
    documents: tuple[Document, ...] = ()
    transformations: tuple[Any, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body used to upsert the pipeline.

        Documents are not part of this body; they are uploaded separately
        once the pipeline id is known (see :meth:`document_payloads`).
        """
        return {
            "name": self.name,
            "pipeline_type": self.pipeline_type,
            "configured_transformations": [t.to_payload() for t in self.transformations],
            "data_sources": [],
            "data_sinks": [],
        }

    def document_payloads(self) -> list[dict[str, Any]]:
        """Return the JSON bodies for the request's documents, in input order."""
        return [
            {
                "id": doc.doc_id,
                "text": doc.text,
                "metadata": dict(doc.metadata),
                "excluded_embed_metadata_keys": list(doc.excluded_embed_metadata_keys),
                "excluded_llm_metadata_keys": list(doc.excluded_llm_metadata_keys),
            }
            for doc in self.documents
        ]


class IngestionStatus(str, Enum):
    """Normalised state of a managed ingestion run."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"

    @classmethod
    def from_remote(cls, value: Any) -> "IngestionStatus":
        """Map a platform status string onto the three local states.

        ``SUCCESS`` and ``ERROR`` (any case) are terminal; every other value,
        including ``NOT_STARTED``, ``IN_PROGRESS`` and ``None``, is pending.
        """
        normalised = str(value or "").strip().lower()
        if normalised == cls.SUCCESS.value:
            return cls.SUCCESS
        if normalised == cls.ERROR.value:
            return cls.ERROR
        return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not IngestionStatus.PENDING


@dataclass(frozen=True)
class IngestionRun:
    """One managed ingestion run.

    Attributes
    ----------
    id : str
        Opaque run identifier returned by the platform.
    status : IngestionStatus
        Latest known status.
    """

    id: str
    status: IngestionStatus = IngestionStatus.PENDING


@dataclass(frozen=True)
class TextPart:
    """Text part of a multi-part prompt."""

    text: str
    kind: Literal["text"] = field(default="text", init=False)

    def to_content(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ImagePart:
    """Inline image reference (usually a base64 data URL)."""

    url: str
    kind: Literal["image_url"] = field(default="image_url", init=False)

    def to_content(self) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.url}}


PromptPart: TypeAlias = Union[TextPart, ImagePart]


def parts_to_content(parts: Sequence[PromptPart]) -> list[dict[str, Any]]:
    """Convert prompt parts into OpenAI-style message content blocks."""
    return [part.to_content() for part in parts]


__all__ = [
    "MANAGED_PIPELINE_TYPE",
    "PipelineCreateRequest",
    "IngestionStatus",
    "IngestionRun",
    "TextPart",
    "ImagePart",
    "PromptPart",
    "parts_to_content",
]
