"""cirrus_rag.generation.llm_interface

Unified interface and factory for large language model (LLM) backends.

This module defines a small, provider-agnostic abstraction for generation
from either a plain string prompt or a multi-part prompt (one text part
followed by inline image parts), with concrete implementations backed by
LangChain OpenAI-compatible wrappers. A factory function instantiates the
appropriate implementation from a configuration mapping.

Classes
-------
BaseLLM
    Abstract interface used by the synthesizers.
OpenAIChatLikeLLM
    Chat completions (text and images) via an OpenAI-compatible API.
OpenAILikeLLM
    Text-only completions via an OpenAI-compatible API.

Functions
---------
create_llm
    Construct an LLM implementation from a configuration mapping.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import inspect
from typing import Any, Mapping, Optional, Sequence
import yaml
from langchain_core.messages import HumanMessage
from langchain_openai import OpenAI, ChatOpenAI

from cirrus_rag.common.schemas import ImagePart, PromptPart, TextPart, parts_to_content


def _coerce_top_p(top_p: Any) -> float | None:
    if top_p is None:
        return None
    try:
        value = float(top_p)
    except (TypeError, ValueError):
        return None
    return value if 0.0 < value < 1.0 else None


class BaseLLM(ABC):
    """Abstract interface for LLM generation.

    Concrete implementations wrap provider-specific clients and expose a
    small, consistent API: :meth:`generate` for string prompts and
    :meth:`predict` / :meth:`apredict` for multi-part prompts.
    """

    @classmethod
    def from_config(cls, config_path: str) -> "BaseLLM":
        """Create an LLM instance from a YAML configuration file.

        Raises
        ------
        FileNotFoundError
            If ``config_path`` does not exist.
        """
        with open(config_path, 'r') as f:
            cfg = yaml.safe_load(f)
        return cls.from_config_dict(cfg)

    @classmethod
    @abstractmethod
    def from_config_dict(cls, config: dict) -> "BaseLLM":
        """Create an LLM instance from a configuration mapping.

        Parameters
        ----------
        config : dict
            Mapping with ``model_name``, ``api_base`` and optional
            ``api_key`` and ``model_kwargs``.
        """

    @abstractmethod
    def get_llm(self) -> Any:
        """Return the underlying LangChain model object."""

    @abstractmethod
    def generate(self, prompt: str, **kwargs) -> str:
        """Generate text for a single string prompt."""

    @abstractmethod
    def predict(self, parts: Sequence[PromptPart], **kwargs) -> str:
        """Generate text for a multi-part prompt."""

    @abstractmethod
    async def apredict(self, parts: Sequence[PromptPart], **kwargs) -> str:
        """Asynchronously generate text for a multi-part prompt."""


class OpenAIChatLikeLLM(BaseLLM):
    """LLM interface using an OpenAI-compatible Chat Completions API via LangChain.

    Multi-part prompts are sent as a single user message whose content is a
    list of ``text`` and ``image_url`` blocks, in part order.

    Parameters
    ----------
    model_name : str
        Model identifier (e.g. ``"gpt-4o-mini"``).
    api_base : str
        Base URL for the OpenAI-compatible API endpoint.
    api_key : str, optional
        API key value. Defaults to ``"fake"`` for local deployments that do
        not require authentication.
    **model_kwargs : Any
        Additional keyword arguments forwarded to ``ChatOpenAI`` (e.g.
        ``temperature``, ``max_tokens``). ``stop_list`` sets default stop
        sequences.
    """

    def __init__(
        self,
        model_name: str,
        api_base: str,
        api_key: str = "fake",
        **model_kwargs: Any,
    ):
        self.api_base = api_base
        self.model_kwargs = dict(model_kwargs)
        self.default_stop_list = model_kwargs.pop("stop_list", None)
        top_p = _coerce_top_p(model_kwargs.pop("top_p", None))

        sig = inspect.signature(ChatOpenAI)
        init_kwargs: dict[str, Any] = dict(model_kwargs)

        if "model" in sig.parameters:
            init_kwargs["model"] = model_name
        else:
            init_kwargs["model_name"] = model_name

        if "openai_api_base" in sig.parameters:
            init_kwargs["openai_api_base"] = api_base
        elif "base_url" in sig.parameters:
            init_kwargs["base_url"] = api_base
        else:
            init_kwargs["api_base"] = api_base

        if api_key is not None:
            if "openai_api_key" in sig.parameters:
                init_kwargs["openai_api_key"] = api_key
            else:
                init_kwargs["api_key"] = api_key

        if top_p is not None:
            init_kwargs["top_p"] = top_p

        self.llm = ChatOpenAI(**init_kwargs)

    @classmethod
    def from_config_dict(cls, config: dict) -> "OpenAIChatLikeLLM":
        """Create an OpenAI-compatible chat LLM from a mapping."""
        return cls(
            model_name=config.get('model_name'),
            api_base=config.get('api_base'),
            api_key=config.get('api_key', "fake"),
            **dict(config.get('model_kwargs') or {}),
        )

    def get_llm(self) -> Any:
        """Return the underlying LangChain chat model object."""
        return self.llm

    def _run_kwargs(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        run_kwargs = dict(kwargs)
        explicit_stop = run_kwargs.pop("stop", None)
        alt_stop_list = run_kwargs.pop("stop_list", None)
        final_stop = explicit_stop or alt_stop_list or self.default_stop_list
        if final_stop:
            run_kwargs["stop"] = final_stop
        return run_kwargs

    @staticmethod
    def _text(response: Any) -> str:
        content = response.content if hasattr(response, "content") else response
        return content if isinstance(content, str) else str(content)

    def generate(self, prompt: str, **kwargs) -> str:
        """Generate text for a single string prompt."""
        return self.predict([TextPart(text=prompt)], **kwargs)

    def predict(self, parts: Sequence[PromptPart], **kwargs) -> str:
        """Generate text for a multi-part prompt."""
        message = HumanMessage(content=parts_to_content(parts))
        response = self.llm.invoke([message], **self._run_kwargs(kwargs))
        return self._text(response)

    async def apredict(self, parts: Sequence[PromptPart], **kwargs) -> str:
        """Asynchronously generate text for a multi-part prompt."""
        message = HumanMessage(content=parts_to_content(parts))
        response = await self.llm.ainvoke([message], **self._run_kwargs(kwargs))
        return self._text(response)


class OpenAILikeLLM(BaseLLM):
    """Text-only LLM interface using an OpenAI-compatible completions API.

    This implementation wraps :class:`langchain_openai.OpenAI`. It cannot
    consume images: multi-part prompts containing an image part are rejected.

    Parameters
    ----------
    model_name : str
        Model identifier.
    api_base : str
        Base URL for the OpenAI-compatible API endpoint.
    api_key : str, optional
        API key value. Defaults to ``"fake"``.
    **model_kwargs : Any
        Additional keyword arguments forwarded to ``OpenAI``.

    Notes
    -----
    Stop sequences are resolved in the following order: explicit ``stop``,
    per-call ``stop_list``, instance default stop list, then a fallback of
    ``["User:"]``.
    """

    def __init__(
        self,
        model_name: str,
        api_base: str,
        api_key: str = "fake",
        **model_kwargs: Any,
    ):
        self.api_base = api_base
        self.model_kwargs = dict(model_kwargs)
        self.default_stop_list = model_kwargs.pop("stop_list", None)
        top_p = _coerce_top_p(model_kwargs.pop("top_p", None))

        self.llm = OpenAI(
            model_name=model_name,
            openai_api_base=api_base,
            openai_api_key=api_key,
            top_p=top_p or 1,
            **model_kwargs,
        )

    @classmethod
    def from_config_dict(cls, config: dict) -> "OpenAILikeLLM":
        """Create an OpenAI-compatible completion LLM from a mapping."""
        return cls(
            model_name=config.get('model_name'),
            api_base=config.get('api_base'),
            api_key=config.get('api_key', "fake"),
            **dict(config.get('model_kwargs') or {}),
        )

    def get_llm(self) -> Any:
        return self.llm

    def _run_kwargs(self, kwargs: dict[str, Any]) -> tuple[list[str], dict[str, Any]]:
        run_kwargs = dict(kwargs)
        explicit_stop = run_kwargs.pop("stop", None)
        alt_stop_list = run_kwargs.pop("stop_list", None)
        final_stop = explicit_stop or alt_stop_list or self.default_stop_list or ["User:"]
        return final_stop, run_kwargs

    @staticmethod
    def _flatten(parts: Sequence[PromptPart]) -> str:
        if any(isinstance(p, ImagePart) for p in parts):
            raise ValueError("OpenAILikeLLM is text-only and cannot accept image parts.")
        return "\n\n".join(p.text for p in parts)

    def generate(self, prompt: str, **kwargs) -> str:
        """Generate text for a single string prompt."""
        stop, run_kwargs = self._run_kwargs(kwargs)
        response = self.llm.generate([prompt], stop=stop, **run_kwargs)
        return response.generations[0][0].text

    def predict(self, parts: Sequence[PromptPart], **kwargs) -> str:
        return self.generate(self._flatten(parts), **kwargs)

    async def apredict(self, parts: Sequence[PromptPart], **kwargs) -> str:
        prompt = self._flatten(parts)
        stop, run_kwargs = self._run_kwargs(kwargs)
        response = await self.llm.agenerate([prompt], stop=stop, **run_kwargs)
        return response.generations[0][0].text


# ----------------- Factory helpers -----------------

def _get_llm_kind(cfg: Mapping[str, Any]) -> str:
    """Extract the kind/type/provider discriminator from a config mapping.

    Returns
    -------
    str
        The first non-empty discriminator value found, or an empty string.
    """
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_llm_kind(kind: str) -> str:
    """Normalise a kind string to a registry key.

    Case, underscores, hyphens and spaces are ignored, so
    ``"OpenAIChatLike"``, ``"openai-chat-like"`` and ``"openai_chat_like"``
    all map to ``"openaichatlike"``.
    """
    return "".join(ch for ch in kind.lower() if ch.isalnum())


_REGISTRY: dict[str, type[BaseLLM]] = {
    "openaichat": OpenAIChatLikeLLM,
    "openaichatlike": OpenAIChatLikeLLM,
    "chatopenai": OpenAIChatLikeLLM,
    "openailike": OpenAILikeLLM,
    "openai": OpenAILikeLLM,
}


def create_llm(config: Mapping[str, Any]) -> BaseLLM:
    """Create an LLM implementation from a configuration mapping.

    The implementation is selected by a discriminator field (one of
    ``kind``, ``type``, ``provider``, ``backend`` or ``impl``).

    Parameters
    ----------
    config : Mapping[str, Any]
        Configuration mapping used to construct the LLM.

    Returns
    -------
    BaseLLM
        An initialised LLM implementation.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator is missing or selects an unsupported implementation.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_llm expected a mapping/dict, got {type(config)}")

    kind_raw = _get_llm_kind(config)
    kind = _normalize_llm_kind(kind_raw)

    if not kind:
        raise ValueError(
            "LLM config is missing a discriminator field (type/kind/provider/etc.). "
            "Add e.g. type: OpenAIChatLike."
        )

    cls = _REGISTRY.get(kind)
    if cls is None:
        raise ValueError(
            f"Unknown LLM kind '{kind_raw}' (normalized to '{kind}'). Supported kinds: {sorted(_REGISTRY)}."
        )

    return cls.from_config_dict(dict(config))


__all__ = [
    "BaseLLM",
    "OpenAIChatLikeLLM",
    "OpenAILikeLLM",
    "create_llm",
]
