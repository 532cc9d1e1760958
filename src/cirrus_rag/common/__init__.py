"""
Common building blocks shared across the cloud index client and synthesizers.

This package provides small, widely-used primitives (request/run value types,
prompt parts and the error hierarchy) intended to be imported by multiple
layers of the system.

Classes
-------
PipelineCreateRequest
    Immutable managed-pipeline description.
IngestionRun
    Identifier and status of a managed ingestion run.
IngestionStatus
    Normalised ingestion state (pending, success, error).
TextPart, ImagePart
    Parts of a multi-part prompt.

See Also
--------
cirrus_rag.common.schemas
    Defines the value types.
cirrus_rag.common.errors
    Defines the exception hierarchy.
"""
from __future__ import annotations

from .schemas import (
    ImagePart,
    IngestionRun,
    IngestionStatus,
    PipelineCreateRequest,
    PromptPart,
    TextPart,
)

__all__ = [
    "PipelineCreateRequest",
    "IngestionRun",
    "IngestionStatus",
    "TextPart",
    "ImagePart",
    "PromptPart",
]
