"""cirrus_rag.cloud.retriever

Retriever over a managed cloud pipeline.

Classes
-------
CloudRetriever
    LlamaIndex retriever that runs searches against a named pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from llama_index.core.base.base_retriever import BaseRetriever
from llama_index.core.schema import NodeWithScore, QueryBundle, TextNode
from llama_index.core.vector_stores.types import MetadataFilters

from cirrus_rag.cloud.params import resolve_project_name
from cirrus_rag.cloud.platform_client import PlatformClient

logger = logging.getLogger("cirrus_rag.cloud.retriever")


class CloudRetriever(BaseRetriever):
    """Retrieve nodes from a managed pipeline by name.

    Constructing a retriever never contacts the platform. The pipeline id is
    looked up on every retrieval, so a retriever created before a pipeline
    exists starts working once it does.

    Parameters
    ----------
    name : str
        Pipeline name.
    project_name : str or None, optional
        Project containing the pipeline. Defaults to ``name``.
    api_key : str or None, optional
        Platform API key.
    base_url : str or None, optional
        Platform API base URL.
    similarity_top_k : int or None, optional
        Number of dense results. ``None`` uses the platform default.
    sparse_similarity_top_k : int or None, optional
        Number of sparse (keyword) results.
    alpha : float or None, optional
        Dense/sparse weighting for hybrid search.
    enable_reranking : bool or None, optional
        Whether the platform reranks results.
    rerank_top_n : int or None, optional
        Number of results kept after reranking.
    filters : MetadataFilters or None, optional
        Metadata filters applied to the search.
    client : PlatformClient or None, optional
        Client to use. Built from the connection parameters when omitted.
    timeout : float, optional
        Request timeout for a client built here.
    """

    def __init__(
            self,
            *,
            name: str,
            project_name: Optional[str] = None,
            api_key: Optional[str] = None,
            base_url: Optional[str] = None,
            similarity_top_k: Optional[int] = None,
            sparse_similarity_top_k: Optional[int] = None,
            alpha: Optional[float] = None,
            enable_reranking: Optional[bool] = None,
            rerank_top_n: Optional[int] = None,
            filters: Optional[MetadataFilters] = None,
            client: Optional[PlatformClient] = None,
            timeout: float = 60.0,
            verbose: bool = False,
        ):
        super().__init__(verbose=verbose)
        self.name = name
        self.project_name = resolve_project_name(project_name, name)
        self.similarity_top_k = similarity_top_k
        self.sparse_similarity_top_k = sparse_similarity_top_k
        self.alpha = alpha
        self.enable_reranking = enable_reranking
        self.rerank_top_n = rerank_top_n
        self.filters = filters
        self._client = client or PlatformClient(api_key=api_key, base_url=base_url, timeout=timeout)

    def _search_payload(self, query: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"query": query}
        optional = {
            "dense_similarity_top_k": self.similarity_top_k,
            "sparse_similarity_top_k": self.sparse_similarity_top_k,
            "alpha": self.alpha,
            "enable_reranking": self.enable_reranking,
            "rerank_top_n": self.rerank_top_n,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if self.filters is not None:
            payload["search_filters"] = self.filters.model_dump(mode="json")
        return payload

    def _pipeline_id(self) -> str:
        pipelines = self._client.search_pipelines(self.project_name, self.name)
        if not pipelines or not pipelines[0].get("id"):
            raise LookupError(
                f"No pipeline named {self.name!r} found in project {self.project_name!r}."
            )
        return pipelines[0]["id"]

    @staticmethod
    def _to_node_with_score(item: dict[str, Any]) -> NodeWithScore:
        raw = item.get("node") or {}
        node_kwargs: dict[str, Any] = {
            "text": raw.get("text") or "",
            "metadata": dict(raw.get("metadata") or {}),
        }
        node_id = raw.get("id_") or raw.get("id")
        if node_id:
            node_kwargs["id_"] = node_id
        score = item.get("score")
        return NodeWithScore(
            node=TextNode(**node_kwargs),
            score=float(score) if score is not None else None,
        )

    def _retrieve(self, query_bundle: QueryBundle) -> list[NodeWithScore]:
        pipeline_id = self._pipeline_id()
        result = self._client.run_search(pipeline_id, self._search_payload(query_bundle.query_str))
        nodes = [self._to_node_with_score(item) for item in (result or {}).get("retrieval_nodes", [])]
        logger.debug("Retrieved %d node(s) from pipeline %s", len(nodes), pipeline_id)
        return nodes


__all__ = ["CloudRetriever"]
