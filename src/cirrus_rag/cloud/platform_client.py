"""cirrus_rag.cloud.platform_client

Thin REST client for the managed ingestion platform.

Each method performs exactly one HTTP request (``upsert_pipeline`` performs a
second one to upload documents once the pipeline id is known) and returns the
decoded JSON body unchanged. Validation of the returned payloads, such as
checking for missing identifiers, is left to the caller.

Classes
-------
PlatformClient
    ``requests``-based client for projects, pipelines, managed ingestion and
    retrieval.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

from cirrus_rag.cloud.params import resolve_api_key, resolve_base_url
from cirrus_rag.common.schemas import PipelineCreateRequest

logger = logging.getLogger("cirrus_rag.cloud.platform_client")

API_PREFIX = "/api/v1"


class PlatformClient:
    """Client for the platform's ``/api/v1`` REST surface.

    Parameters
    ----------
    api_key : str or None, optional
        Bearer token. Falls back to ``CIRRUS_CLOUD_API_KEY``.
    base_url : str or None, optional
        API base URL. Falls back to ``CIRRUS_CLOUD_BASE_URL`` and then the
        public platform URL.
    timeout : float, optional
        Per-request timeout in seconds. Defaults to ``60``.
    session : requests.Session or None, optional
        Session to use. A new one is created when omitted.

    Notes
    -----
    Non-2xx responses raise :class:`requests.HTTPError` via
    ``raise_for_status``; nothing is retried.
    """

    def __init__(
            self,
            api_key: Optional[str] = None,
            base_url: Optional[str] = None,
            timeout: float = 60.0,
            session: Optional[requests.Session] = None,
        ):
        self.base_url = resolve_base_url(base_url)
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"Accept": "application/json"})

        token = resolve_api_key(api_key)
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    @classmethod
    def from_config_dict(
            cls,
            config: Mapping[str, Any],
            session: Optional[requests.Session] = None,
        ) -> "PlatformClient":
        """Create a client from the ``cloud`` configuration section.

        Parameters
        ----------
        config : Mapping[str, Any]
            Mapping with optional ``api_key``, ``base_url`` and ``timeout``.
        session : requests.Session or None, optional
            Session to use.

        Returns
        -------
        PlatformClient
            A configured client. No request is made.
        """
        return cls(
            api_key=config.get("api_key"),
            base_url=config.get("base_url"),
            timeout=float(config.get("timeout") or 60.0),
            session=session,
        )

    def _request(
            self,
            method: str,
            path: str,
            *,
            params: Optional[Mapping[str, Any]] = None,
            json: Any = None,
        ) -> Any:
        url = f"{self.base_url}{API_PREFIX}{path}"
        logger.debug("%s %s", method, url)
        response = self.session.request(
            method,
            url,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        response.raise_for_status()
        if not response.content:
            return {}
        return response.json()

    def upsert_project(self, name: str) -> dict[str, Any]:
        """Create or update a project by name."""
        return self._request("PUT", "/projects", json={"name": name})

    def upsert_pipeline(
            self,
            project_id: str,
            request: PipelineCreateRequest,
        ) -> dict[str, Any]:
        """Create or update a pipeline and upload the request's documents.

        Parameters
        ----------
        project_id : str
            Project that owns the pipeline.
        request : PipelineCreateRequest
            Pipeline description.

        Returns
        -------
        dict[str, Any]
            The pipeline payload returned by the upsert. When it carries no
            ``id`` the documents are not uploaded.
        """
        pipeline = self._request(
            "PUT",
            "/pipelines",
            params={"project_id": project_id},
            json=request.to_payload(),
        )
        pipeline_id = pipeline.get("id") if isinstance(pipeline, dict) else None
        if pipeline_id and request.documents:
            self.upsert_pipeline_documents(pipeline_id, request.document_payloads())
        return pipeline

    def upsert_pipeline_documents(
            self,
            pipeline_id: str,
            documents: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
        """Create or update a batch of documents in a pipeline."""
        return self._request("PUT", f"/pipelines/{pipeline_id}/documents", json=documents)

    def start_managed_ingestion(self, pipeline_id: str) -> dict[str, Any]:
        """Start a managed ingestion run for a pipeline."""
        return self._request("POST", f"/pipelines/{pipeline_id}/managed-ingestion")

    def get_managed_ingestion(self, pipeline_id: str, run_id: str) -> dict[str, Any]:
        """Return the current state of a managed ingestion run."""
        return self._request("GET", f"/pipelines/{pipeline_id}/managed-ingestion/{run_id}")

    def search_pipelines(
            self,
            project_name: str,
            pipeline_name: str,
        ) -> list[dict[str, Any]]:
        """Return pipelines matching a project name and pipeline name."""
        result = self._request(
            "GET",
            "/pipelines",
            params={"project_name": project_name, "pipeline_name": pipeline_name},
        )
        return list(result or [])

    def run_search(self, pipeline_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Run a retrieval query against a pipeline."""
        return self._request("POST", f"/pipelines/{pipeline_id}/retrieve", json=dict(payload))


__all__ = ["PlatformClient"]
