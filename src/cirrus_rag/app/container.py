"""cirrus_rag.app.container

Composition root for cirrus-rag.

This module is the single place where concrete implementations are wired
together from configuration (platform client, LLM client, prompt templates,
synthesizer, cloud index handle and query engine). Components are constructed
lazily and cached on first access.

Notes
-----
- Keep this module importable with minimal side effects:
  - do not perform network calls at import time or on property access
  - do not read files at import time

- The index handle exposed here refers to an already-ingested pipeline by
  name. Creating and ingesting a pipeline is done with
  :meth:`CirrusContainer.ingest`.

Examples
--------
>>> from cirrus_rag.config import GlobalConfig
>>> from cirrus_rag.app.container import build_container
>>> cfg = GlobalConfig.load("config.yaml")
>>> c = build_container(cfg)
>>> answer = c.query_engine.query("my question")
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Mapping, Sequence


@dataclass(frozen=True)
class CirrusContainer:
    """Holds the configured, cached runtime components for the application.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`cirrus_rag.config.GlobalConfig`).
    """

    config: Any

    @cached_property
    def cloud_settings(self) -> Mapping[str, Any]:
        """Return the ``cloud`` configuration section as a mapping."""
        return _as_mapping(self.config.cloud)

    @cached_property
    def platform_client(self) -> Any:
        """Return the platform REST client.

        Returns
        -------
        Any
            A :class:`cirrus_rag.cloud.platform_client.PlatformClient`.
        """
        from cirrus_rag.cloud.platform_client import PlatformClient

        return PlatformClient.from_config_dict(self.cloud_settings)

    @cached_property
    def generator_llm(self) -> Any:
        """Return the LLM used to generate final answers."""
        from cirrus_rag.generation.llm_interface import create_llm

        section = _as_mapping(self.config.generator_llm)
        return create_llm(dict(section))

    @cached_property
    def prompt_builder(self) -> Any:
        """Return the prompt builder.

        The packaged default templates are always registered first; sources
        from ``config.prompts`` are registered afterwards and may override
        them. Relative file sources are resolved against the config file's
        directory.
        """
        from cirrus_rag.generation.prompt_builder import load_default_prompts

        builder = load_default_prompts()
        prompts = getattr(self.config, "prompts", None)
        if prompts is None:
            return builder

        cfg_path = getattr(self.config, "config_path", None)
        base_dir = Path(cfg_path).expanduser().resolve().parent if cfg_path else None

        if isinstance(prompts, str):
            sources = [prompts]
        elif isinstance(prompts, (list, tuple)):
            sources = [str(p) for p in prompts]
        else:
            raise TypeError(f"config.prompts must be a str or list[str], got {type(prompts)!r}")

        for src in sources:
            builder.register_from_source(src, base_dir=base_dir)

        return builder

    @cached_property
    def synthesizer_settings(self) -> Mapping[str, Any]:
        """Return the ``synthesizer`` configuration section as a mapping."""
        return _as_mapping(self.config.synthesizer)

    @cached_property
    def text_qa_template(self) -> Any:
        """Return the text-QA template named by ``synthesizer.prompt_name``.

        Raises
        ------
        ValueError
            If the named template is not registered.
        """
        name = self.synthesizer_settings["prompt_name"]
        if not self.prompt_builder.has_prompt(name):
            available = ", ".join(self.prompt_builder.list_prompts())
            raise ValueError(
                f"Configured prompt_name {name!r} was not found in loaded prompts. "
                f"Available: [{available}]"
            )
        return self.prompt_builder.get_template(name)

    @cached_property
    def synthesizer(self) -> Any:
        """Return the multi-modal response synthesizer."""
        from cirrus_rag.synthesizers.multi_modal import MultiModalResponseSynthesizer

        return MultiModalResponseSynthesizer(
            llm=self.generator_llm,
            text_qa_template=self.text_qa_template,
            metadata_mode=self.synthesizer_settings["metadata_mode"],
        )

    @cached_property
    def index(self) -> Any:
        """Return a handle for the configured, already-ingested pipeline."""
        from cirrus_rag.cloud.index import CloudIndex
        from cirrus_rag.cloud.params import CloudIndexParams

        cloud = self.cloud_settings
        params = CloudIndexParams(
            name=cloud["name"],
            project_name=cloud["project_name"],
            api_key=cloud.get("api_key"),
            base_url=cloud.get("base_url"),
        )
        return CloudIndex(
            params,
            retrieval_defaults=cloud.get("retrieval"),
            client=self.platform_client,
        )

    @cached_property
    def query_engine(self) -> Any:
        """Return a query engine over :attr:`index` using :attr:`synthesizer`."""
        return self.index.as_query_engine(response_synthesizer=self.synthesizer)

    def ingest(self, documents: Sequence[Any], *, verbose: bool = False) -> Any:
        """Create the configured pipeline from ``documents`` and wait for ingestion.

        Parameters
        ----------
        documents : Sequence[Document]
            Documents to ingest.
        verbose : bool, optional
            Print progress to stdout.

        Returns
        -------
        CloudIndex
            Handle for the ingested pipeline.
        """
        from cirrus_rag.cloud.index import CloudIndex

        cloud = self.cloud_settings
        return CloudIndex.from_documents(
            documents,
            cloud["name"],
            project_name=cloud["project_name"],
            api_key=cloud.get("api_key"),
            base_url=cloud.get("base_url"),
            verbose=verbose,
            client=self.platform_client,
            poll_interval=cloud.get("poll_interval") or 1.0,
            timeout=cloud.get("ingestion_timeout"),
            retrieval_defaults=cloud.get("retrieval"),
        )


def build_container(config: Any) -> CirrusContainer:
    """Create a :class:`~cirrus_rag.app.container.CirrusContainer`.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`cirrus_rag.config.GlobalConfig`).

    Returns
    -------
    CirrusContainer
        Container instance with cached component accessors.
    """
    return CirrusContainer(config=config)


def _as_mapping(obj: Any) -> Mapping[str, Any]:
    """Coerce an object into a mapping.

    Raises
    ------
    TypeError
        If ``obj`` cannot be interpreted as a mapping.
    """
    if isinstance(obj, Mapping):
        return obj

    if hasattr(obj, "__dict__"):
        return dict(vars(obj))

    raise TypeError(f"Expected mapping type but got {type(obj)}")


__all__ = ["CirrusContainer", "build_container"]
