"""cirrus_rag.cloud.index

Index handle over a managed cloud pipeline.

This module defines :class:`CloudIndex`, which creates a managed pipeline from
documents, waits for its ingestion run to finish, and then hands out
retrievers and query engines over it.

Classes
-------
CloudIndex
    Handle for a pipeline whose ingestion has completed.

Notes
-----
Index creation is not transactional. If a step fails after the project or
pipeline has been upserted, those remote resources are left in place.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Mapping, Optional, Sequence

from llama_index.core.query_engine import RetrieverQueryEngine
from llama_index.core.schema import Document
from llama_index.core.vector_stores.types import MetadataFilters

from cirrus_rag.cloud.ingestion import Clock, IngestionMonitor
from cirrus_rag.cloud.params import (
    CloudIndexParams,
    merge_params,
    resolve_app_url,
)
from cirrus_rag.cloud.platform_client import PlatformClient
from cirrus_rag.cloud.retriever import CloudRetriever
from cirrus_rag.cloud.transformations import build_pipeline_create
from cirrus_rag.common.errors import MissingIdentifierError
from cirrus_rag.generation.llm_interface import BaseLLM
from cirrus_rag.synthesizers.multi_modal import MultiModalResponseSynthesizer

logger = logging.getLogger("cirrus_rag.cloud.index")


def _require_id(payload: Any, resource: str) -> str:
    identifier = payload.get("id") if isinstance(payload, Mapping) else None
    if not identifier:
        raise MissingIdentifierError(resource)
    return identifier


class CloudIndex:
    """Handle for an ingested managed pipeline.

    Parameters
    ----------
    params : CloudIndexParams
        Connection parameters and pipeline identity.
    retrieval_defaults : Mapping[str, Any] or None, optional
        Default retrieval parameters (e.g. ``similarity_top_k``) applied to
        every retriever this index creates.
    client : PlatformClient or None, optional
        Client shared with retrievers. Each retriever builds its own when
        omitted.

    Notes
    -----
    The handle is immutable: :meth:`as_retriever` and :meth:`as_query_engine`
    build a fresh instance on each call from merged parameters and never
    contact the platform.
    """

    def __init__(
            self,
            params: CloudIndexParams,
            retrieval_defaults: Optional[Mapping[str, Any]] = None,
            client: Optional[PlatformClient] = None,
        ):
        self._params = params
        self._retrieval_defaults = dict(retrieval_defaults or {})
        self._client = client

    @property
    def params(self) -> CloudIndexParams:
        return self._params

    @property
    def retrieval_defaults(self) -> dict[str, Any]:
        return dict(self._retrieval_defaults)

    @classmethod
    def from_documents(
            cls,
            documents: Sequence[Document],
            name: str,
            *,
            transformations: Optional[Iterable[Any]] = None,
            project_name: Optional[str] = None,
            api_key: Optional[str] = None,
            base_url: Optional[str] = None,
            verbose: bool = False,
            client: Optional[PlatformClient] = None,
            clock: Optional[Clock] = None,
            poll_interval: float = 1.0,
            timeout: Optional[float] = None,
            cancel_event: Optional[threading.Event] = None,
            retrieval_defaults: Optional[Mapping[str, Any]] = None,
        ) -> "CloudIndex":
        """Create a managed pipeline from documents and wait for ingestion.

        Parameters
        ----------
        documents : Sequence[Document]
            Non-empty sequence of documents to ingest.
        name : str
            Pipeline name.
        transformations : Iterable[Any] or None, optional
            Ingestion transformations. ``None`` uses a single default
            embedding step.
        project_name : str or None, optional
            Project to upsert. Defaults to the pipeline ``name``.
        api_key, base_url : str or None, optional
            Platform connection parameters.
        verbose : bool, optional
            Print progress to stdout.
        client : PlatformClient or None, optional
            Client to use instead of building one.
        clock : Clock or None, optional
            Time source for polling.
        poll_interval : float, optional
            Seconds between status checks. Defaults to ``1.0``.
        timeout : float or None, optional
            Upper bound on polling; ``None`` waits indefinitely.
        cancel_event : threading.Event or None, optional
            Cancellation token for polling.
        retrieval_defaults : Mapping[str, Any] or None, optional
            Default retrieval parameters stored on the returned handle.

        Returns
        -------
        CloudIndex
            Handle for the ingested pipeline.

        Raises
        ------
        ValueError
            If ``documents`` is empty.
        MissingIdentifierError
            If the project, pipeline or ingestion-run response has no id.
        IngestionFailedError
            If the run reports an error (or times out / is cancelled).
        requests.HTTPError
            If any platform call fails.
        """
        if not documents:
            raise ValueError("from_documents requires at least one document")

        params = CloudIndexParams(
            name=name,
            project_name=project_name,
            api_key=api_key,
            base_url=base_url,
        )
        app_url = resolve_app_url(base_url)
        platform = client or PlatformClient(api_key=api_key, base_url=base_url)

        request = build_pipeline_create(
            name=name,
            documents=documents,
            transformations=transformations,
        )

        project_id = _require_id(platform.upsert_project(params.project_name), "project")
        pipeline_id = _require_id(platform.upsert_pipeline(project_id, request), "pipeline")

        logger.info("Created pipeline %s with name %s", pipeline_id, name)
        if verbose:
            print(f"Created pipeline {pipeline_id} with name {name}")

        run_id = _require_id(platform.start_managed_ingestion(pipeline_id), "ingestion run")

        monitor = IngestionMonitor(
            platform,
            pipeline_id,
            run_id,
            clock=clock,
            poll_interval=poll_interval,
            timeout=timeout,
            cancel_event=cancel_event,
            on_pending=(lambda: print(".", end="", flush=True)) if verbose else None,
        )
        monitor.wait()

        deploy_url = f"{app_url}/project/{project_id}/deploy/{pipeline_id}"
        logger.info("Ingestion %s completed after %d check(s): %s", run_id, monitor.checks, deploy_url)
        if verbose:
            print(f"\nIngestion completed, find your index at {deploy_url}")

        return cls(params, retrieval_defaults=retrieval_defaults, client=client)

    def _retriever_params(self, overrides: Mapping[str, Any]) -> dict[str, Any]:
        stored = merge_params(self._params.to_dict(), self._retrieval_defaults)
        if self._client is not None:
            stored["client"] = self._client
        return merge_params(stored, overrides)

    def as_retriever(self, **overrides: Any) -> CloudRetriever:
        """Build a retriever over this index.

        Parameters
        ----------
        **overrides : Any
            Retriever parameters (see :class:`CloudRetriever`). Each one
            that is not ``None`` wins over the stored value.

        Returns
        -------
        CloudRetriever
            A new retriever. No platform call is made.
        """
        return CloudRetriever(**self._retriever_params(overrides))

    def as_query_engine(
            self,
            response_synthesizer: Any = None,
            pre_filters: Optional[MetadataFilters] = None,
            node_postprocessors: Optional[list[Any]] = None,
            llm: Optional[BaseLLM] = None,
            **overrides: Any,
        ) -> RetrieverQueryEngine:
        """Build a query engine over this index.

        Parameters
        ----------
        response_synthesizer : Any, optional
            Synthesizer used to answer from retrieved nodes. When ``None`` a
            :class:`~cirrus_rag.synthesizers.multi_modal.MultiModalResponseSynthesizer`
            is built around ``llm``.
        pre_filters : MetadataFilters or None, optional
            Metadata filters applied at retrieval time. An explicit
            ``filters`` override takes precedence.
        node_postprocessors : list or None, optional
            Post-processors applied to retrieved nodes before synthesis.
        llm : BaseLLM or None, optional
            Model for the default synthesizer. Ignored when
            ``response_synthesizer`` is given.
        **overrides : Any
            Retriever parameters, as for :meth:`as_retriever`.

        Returns
        -------
        RetrieverQueryEngine
            A new query engine. No platform call is made.

        Raises
        ------
        ValueError
            If neither ``response_synthesizer`` nor ``llm`` is given.
        """
        if response_synthesizer is None:
            if llm is None:
                raise ValueError(
                    "as_query_engine needs a response_synthesizer or an llm to build one from."
                )
            response_synthesizer = MultiModalResponseSynthesizer(llm=llm)

        retriever_overrides = merge_params({"filters": pre_filters}, overrides)
        retriever = self.as_retriever(**retriever_overrides)
        return RetrieverQueryEngine(
            retriever=retriever,
            response_synthesizer=response_synthesizer,
            node_postprocessors=node_postprocessors,
        )


__all__ = ["CloudIndex"]
