"""cirrus_rag

Client-side orchestration for retrieval-augmented generation on a managed
cloud platform.

This package creates managed ingestion pipelines from documents, waits for
them to finish, exposes retrievers and query engines over the result, and
synthesizes answers from mixed text and image context with a single LLM call.

Attributes
----------
__version__ : str
    Package version string. Defaults to ``"0.0.0-dev"`` when package metadata is
    unavailable.

Modules
-------
config
    Global configuration loader and cached accessors.
app
    Application container and composition root for wiring components.
cloud
    Cloud index client: platform REST client, ingestion polling, index handle
    and retriever.
synthesizers
    Multi-modal response synthesizer.
generation
    LLM and prompt-template interfaces and factories.
common
    Shared value types and the error hierarchy.

Exports
-------
GlobalConfig
    Global configuration loader and accessor.
CirrusContainer
    Cached runtime component container for applications.
build_container
    Factory function to construct a configured :class:`~cirrus_rag.app.container.CirrusContainer`.
CloudIndex
    Index handle over an ingested managed pipeline.
MultiModalResponseSynthesizer
    Synthesizer combining text and image context.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cirrus-rag")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from .config import GlobalConfig
from .app.container import CirrusContainer, build_container
from .cloud import CloudIndex
from .synthesizers import MultiModalResponseSynthesizer

__all__ = [
    "__version__",
    "GlobalConfig",
    "CirrusContainer",
    "build_container",
    "CloudIndex",
    "MultiModalResponseSynthesizer",
]
