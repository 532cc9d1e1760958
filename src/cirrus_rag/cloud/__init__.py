"""
Cloud index client.

This package creates managed ingestion pipelines on the platform, waits for
their ingestion runs, and exposes retriever and query-engine adapters over the
resulting index.

Submodules
----------
params
    Connection parameters, URL/key resolution and parameter merging.
platform_client
    REST client for the platform API.
transformations
    Platform-side transformation descriptions and the pipeline request builder.
ingestion
    Ingestion polling state machine with an injectable clock.
retriever
    Retriever over a named pipeline.
index
    The index handle.

Re-exports
----------
CloudIndex
    Index handle over an ingested pipeline.
CloudRetriever
    Retriever over a managed pipeline.
PlatformClient
    REST client for the platform.
"""

from .index import CloudIndex
from .ingestion import IngestionMonitor, SystemClock
from .params import CloudIndexParams, merge_params
from .platform_client import PlatformClient
from .retriever import CloudRetriever
from .transformations import EmbeddingTransformation, SentenceSplitterTransformation

__all__ = [
    "CloudIndex",
    "CloudIndexParams",
    "CloudRetriever",
    "EmbeddingTransformation",
    "IngestionMonitor",
    "PlatformClient",
    "SentenceSplitterTransformation",
    "SystemClock",
    "merge_params",
]
