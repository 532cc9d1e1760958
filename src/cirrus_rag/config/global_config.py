"""cirrus_rag.config.global_config

Global configuration loader and accessors.

This module defines a lightweight wrapper around a raw YAML configuration
dictionary, providing validated, cached access to the configuration sections
used by the cloud index client, the LLM interface and the synthesizer.

Environment variables of the form ``${VAR}`` are expanded recursively in all
string values at load time.

Classes
-------
GlobalConfig
    Loader and accessor for global project configuration.
"""

import os
import yaml
from pathlib import Path
from functools import cached_property

from llama_index.core.schema import MetadataMode


def _expand_env(obj):
    """Recursively expand environment variables in a nested structure.

    This function walks nested dictionaries and lists and applies
    :func:`os.path.expandvars` to any string values, expanding patterns of the
    form ``${VAR}`` using the current process environment.

    Parameters
    ----------
    obj : Any
        Object to expand. Supported types are dictionaries, lists, and strings.
        Other types are returned unchanged.

    Returns
    -------
    Any
        A structure of the same shape as ``obj`` with environment variables
        expanded in all string values.
    """
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        return os.path.expandvars(obj)
    return obj


def _positive_float(section: str, key: str, value, default):
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise TypeError(f"'{section}.{key}' must be a number, got {value!r}.")
    if number <= 0:
        raise ValueError(f"'{section}.{key}' must be positive, got {number}.")
    return number


class GlobalConfig:
    """Loader and accessor for global project configuration.

    This class wraps a raw configuration dictionary (typically loaded from YAML)
    and exposes validated, cached accessors for commonly used configuration
    sections.

    Parameters
    ----------
    raw : dict
        Raw configuration data as loaded from a YAML file.
    config_path : Path or None, optional
        Absolute path of the loaded file, used to resolve relative prompt
        sources.
    """

    def __init__(
            self,
            raw: dict,
            config_path: Path | None = None,
        ):
        self.raw = raw or {}
        self.config_path = config_path

    @classmethod
    def load(
            cls,
            path: str | Path,
        ) -> "GlobalConfig":
        """Load configuration from a YAML file.

        Parameters
        ----------
        path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        GlobalConfig
            An instance initialised with the loaded and environment-expanded data.

        Notes
        -----
        All string values in the loaded YAML are processed with recursive
        environment-variable expansion (``${VAR}``) via :func:`os.path.expandvars`.
        """
        cfg_path = Path(path).expanduser().resolve()
        with cfg_path.open("r") as f:
            data = yaml.safe_load(f)
        data = _expand_env(data)
        return cls(data, config_path=cfg_path)

    @cached_property
    def cloud(self) -> dict:
        """Return the validated cloud index section.

        Returns
        -------
        dict
            Mapping with keys ``name``, ``project_name``, ``api_key``,
            ``base_url``, ``timeout``, ``poll_interval``,
            ``ingestion_timeout`` and ``retrieval``. Optional keys missing
            from the file are filled with ``None`` or their defaults.

        Raises
        ------
        KeyError
            If the ``cloud`` section or its ``name`` key is missing.
        TypeError
            If the section or its ``retrieval`` entry is not a mapping, or a
            numeric entry is not a number.
        ValueError
            If a numeric entry is not positive.
        """
        section = self.raw.get("cloud")
        if section is None:
            raise KeyError("Missing 'cloud' section in configuration.")
        if not isinstance(section, dict):
            raise TypeError("'cloud' must be a mapping.")

        name = section.get("name")
        if not isinstance(name, str) or not name.strip():
            raise KeyError("Missing 'name' under 'cloud' in configuration.")

        retrieval = section.get("retrieval") or {}
        if not isinstance(retrieval, dict):
            raise TypeError("'cloud.retrieval' must be a mapping of retrieval parameters.")

        return {
            "name": name,
            "project_name": section.get("project_name") or None,
            "api_key": section.get("api_key") or None,
            "base_url": section.get("base_url") or None,
            "timeout": _positive_float("cloud", "timeout", section.get("timeout"), 60.0),
            "poll_interval": _positive_float("cloud", "poll_interval", section.get("poll_interval"), 1.0),
            "ingestion_timeout": _positive_float(
                "cloud", "ingestion_timeout", section.get("ingestion_timeout"), None
            ),
            "retrieval": dict(retrieval),
        }

    @cached_property
    def generator_llm(self) -> dict:
        """Return the generator LLM configuration section.

        Returns
        -------
        dict
            The ``generator_llm`` section of the configuration.

        Raises
        ------
        KeyError
            If ``generator_llm`` is missing.
        """
        section = self.raw.get("generator_llm")
        if section is None:
            raise KeyError("Missing 'generator_llm' section in configuration.")
        return section

    @cached_property
    def synthesizer(self) -> dict:
        """Return the synthesizer configuration section.

        Returns
        -------
        dict
            Mapping with ``metadata_mode`` (a :class:`MetadataMode`, default
            ``NONE``) and ``prompt_name`` (default ``"text_qa"``).

        Raises
        ------
        ValueError
            If ``metadata_mode`` is not one of ``all``, ``embed``, ``llm`` or
            ``none``.
        """
        section = self.raw.get("synthesizer") or {}
        mode_raw = str(section.get("metadata_mode") or "none").strip().upper()
        if mode_raw not in MetadataMode.__members__:
            allowed = ", ".join(m.lower() for m in MetadataMode.__members__)
            raise ValueError(f"'synthesizer.metadata_mode' must be one of [{allowed}], got {mode_raw.lower()!r}.")
        return {
            "metadata_mode": MetadataMode[mode_raw],
            "prompt_name": section.get("prompt_name") or "text_qa",
        }

    @cached_property
    def prompts(self):
        """Return the prompts configuration entry.

        Returns
        -------
        str or list[str] or None
            The ``prompts`` entry, which may be a single source, a list of
            sources, or ``None`` if not configured.

        Notes
        -----
        This accessor returns the raw configured value without validation.
        Callers normalise single vs multiple sources.
        """
        return self.raw.get("prompts")
