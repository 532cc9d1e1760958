"""cirrus_rag.common.errors

Exception hierarchy shared by the cloud index client and the synthesizers.

Every error is terminal for the call that raised it. Nothing in this package
catches or retries these; retry policy belongs to the caller.

Classes
-------
CirrusError
    Base class for all package errors.
MissingIdentifierError
    A remote response omitted a required identifier.
IngestionFailedError
    A managed ingestion run reported an error status.
IngestionTimeoutError
    Ingestion polling exceeded the caller-imposed timeout.
IngestionCancelledError
    Ingestion polling was cancelled through its cancellation token.
InvalidPromptShapeError
    A prompt template produced a message list where a flat string was required.
UnsupportedNodeKindError
    A node could not be classified as text or image content.
"""


class CirrusError(Exception):
    """Base class for errors raised by ``cirrus_rag``."""


class MissingIdentifierError(CirrusError, ValueError):
    """A remote response did not carry the ``id`` the next step depends on.

    Parameters
    ----------
    resource : str
        Human-readable name of the resource whose id is missing (e.g.
        ``"project"``, ``"pipeline"`` or ``"ingestion run"``).
    """

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource.capitalize()} ID must be defined in the platform response")


class IngestionFailedError(CirrusError, RuntimeError):
    """A managed ingestion run did not reach a successful terminal state.

    Parameters
    ----------
    pipeline_id : str
        Pipeline the run belongs to.
    run_id : str
        Identifier of the ingestion run.
    message : str, optional
        Override for the default message.
    """

    def __init__(self, pipeline_id: str, run_id: str, message: str | None = None):
        self.pipeline_id = pipeline_id
        self.run_id = run_id
        super().__init__(message or f"Ingestion {run_id} for pipeline {pipeline_id} failed")


class IngestionTimeoutError(IngestionFailedError):
    """Polling gave up after the configured timeout."""

    def __init__(self, pipeline_id: str, run_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            pipeline_id,
            run_id,
            f"Ingestion {run_id} for pipeline {pipeline_id} did not finish within {timeout:g}s",
        )


class IngestionCancelledError(IngestionFailedError):
    """Polling stopped because the cancellation token was set."""

    def __init__(self, pipeline_id: str, run_id: str):
        super().__init__(
            pipeline_id,
            run_id,
            f"Polling of ingestion {run_id} for pipeline {pipeline_id} was cancelled",
        )


class InvalidPromptShapeError(CirrusError, TypeError):
    """A template rendered to a chat message list instead of a single string."""


class UnsupportedNodeKindError(CirrusError, TypeError):
    """A node is neither a text node nor an image node."""


__all__ = [
    "CirrusError",
    "MissingIdentifierError",
    "IngestionFailedError",
    "IngestionTimeoutError",
    "IngestionCancelledError",
    "InvalidPromptShapeError",
    "UnsupportedNodeKindError",
]
