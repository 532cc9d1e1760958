"""cirrus_rag.cloud.params

Connection parameters and parameter merging for the cloud index client.

Functions
---------
resolve_base_url
    Resolve the platform API base URL.
resolve_app_url
    Derive the web application URL from the API base URL.
resolve_api_key
    Resolve the platform API key.
resolve_project_name
    Resolve the project a pipeline lives in.
merge_params
    Merge stored defaults with call-site overrides.

Classes
-------
CloudIndexParams
    Immutable construction parameters of a cloud index handle.
"""

from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional

DEFAULT_BASE_URL = "https://api.cloud.llamaindex.ai"
BASE_URL_ENV = "CIRRUS_CLOUD_BASE_URL"
API_KEY_ENV = "CIRRUS_CLOUD_API_KEY"


def resolve_base_url(base_url: Optional[str] = None) -> str:
    """Return the API base URL without a trailing slash.

    Resolution order: explicit argument, ``CIRRUS_CLOUD_BASE_URL``, then
    :data:`DEFAULT_BASE_URL`.
    """
    url = base_url or os.environ.get(BASE_URL_ENV) or DEFAULT_BASE_URL
    return url.rstrip("/")


def resolve_app_url(base_url: Optional[str] = None) -> str:
    """Return the web application URL for deep links.

    The app is served from the API host without its ``api.`` prefix, e.g.
    ``https://api.cloud.llamaindex.ai`` -> ``https://cloud.llamaindex.ai``.
    """
    return re.sub(r"//api\.", "//", resolve_base_url(base_url), count=1)


def resolve_api_key(api_key: Optional[str] = None) -> Optional[str]:
    """Return the explicit API key, else ``CIRRUS_CLOUD_API_KEY``, else ``None``."""
    return api_key or os.environ.get(API_KEY_ENV) or None


def resolve_project_name(project_name: Optional[str], name: str) -> str:
    """Return ``project_name``, or the pipeline ``name`` when it is unset.

    A pipeline is created inside a project of the same name unless a project
    is given explicitly, and is looked up there again at retrieval time.
    """
    return project_name or name


def merge_params(
        defaults: Mapping[str, Any],
        overrides: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
    """Merge stored defaults with call-site overrides, field by field.

    Parameters
    ----------
    defaults : Mapping[str, Any]
        Stored parameters (e.g. those an index handle was created with).
    overrides : Mapping[str, Any] or None, optional
        Call-site parameters.

    Returns
    -------
    dict[str, Any]
        A new mapping. For every key, an override wins over the stored
        default. An override whose value is ``None`` counts as absent and
        leaves the default in place.

    Notes
    -----
    Neither input is mutated; nested values are not merged recursively.
    """
    merged = dict(defaults)
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value
    return merged


@dataclass(frozen=True)
class CloudIndexParams:
    """Construction parameters of a cloud index handle.

    Attributes
    ----------
    name : str
        Pipeline name.
    project_name : str or None
        Project the pipeline lives in. Resolved to ``name`` when ``None``.
    api_key : str or None
        Platform API key. Resolved from the environment when ``None``.
    base_url : str or None
        Platform API base URL. Resolved from the environment when ``None``.
    """

    name: str
    project_name: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "project_name", resolve_project_name(self.project_name, self.name))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "DEFAULT_BASE_URL",
    "resolve_project_name",
    "CloudIndexParams",
    "resolve_base_url",
    "resolve_app_url",
    "resolve_api_key",
    "merge_params",
]
