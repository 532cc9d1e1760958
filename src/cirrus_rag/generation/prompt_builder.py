"""cirrus_rag.generation.prompt_builder

Prompt template definitions and rendering utilities.

This module provides lightweight abstractions for defining, registering and
rendering named prompt templates. Templates are rendered with Jinja2 and come
in two shapes:

- :class:`PromptTemplate` renders to a single flat string (optional system
  block, few-shot examples and a user block, newline-joined).
- :class:`ChatPromptTemplate` renders to a list of role-tagged messages.

Callers that need a flat string (such as the multi-modal synthesizer) must
reject the second shape.

Classes
-------
PromptTemplate
    Named template rendering to a string.
ChatPromptTemplate
    Named template rendering to a list of chat messages.
PromptBuilder
    Registry and factory for prompt templates.

Attributes
----------
DEFAULT_PROMPTS_SOURCE : str
    Source string of the packaged default templates.
"""
from typing import Optional, List, Dict, Any, Union
from pathlib import Path
import json
from jinja2 import Template
import warnings
from importlib import resources

DEFAULT_PROMPTS_SOURCE = "pkg:cirrus_rag.prompts:default.json"


class PromptTemplate:
    """A named template that renders to one string.

    Parameters
    ----------
    name : str
        Name of the template.
    system : str or None, optional
        System-level instructions, rendered first.
    few_shot : list[dict[str, str]] or None, optional
        Few-shot examples. Each entry contributes its ``"content"`` value.
    user : str, optional
        User instruction block, rendered last.
    """

    def __init__(self,
                 name: str,
                 system: Optional[str] = None,
                 few_shot: Optional[List[Dict[str, str]]] = None,
                 user: Optional[str] = ''
        ):
        self.name = name
        self.system = system
        self.few_shot = few_shot or []
        self.user = user

    def render(self, **kwargs) -> str:
        """Render the template.

        Parameters
        ----------
        **kwargs : Any
            Variables substituted into the template.

        Returns
        -------
        str
            The rendered prompt.
        """
        parts = []
        if self.system:
            parts.append(self.system)
        for example in self.few_shot:
            parts.append(example.get('content', ''))
        if self.user:
            parts.append(self.user)
        return Template("\n".join(parts)).render(**kwargs)


class ChatPromptTemplate:
    """A named template that renders to role-tagged chat messages.

    Parameters
    ----------
    name : str
        Name of the template.
    messages : list[dict[str, str]]
        Message definitions, each with ``"role"`` and ``"content"`` keys.
        ``content`` is a Jinja2 template.
    """

    def __init__(self, name: str, messages: List[Dict[str, str]]):
        self.name = name
        self.messages = list(messages)

    def render(self, **kwargs) -> List[Dict[str, str]]:
        """Render every message.

        Returns
        -------
        list[dict[str, str]]
            Messages with ``role`` and rendered ``content``.
        """
        return [
            {"role": m.get("role", "user"), "content": Template(m.get("content", "")).render(**kwargs)}
            for m in self.messages
        ]


AnyPromptTemplate = Union[PromptTemplate, ChatPromptTemplate]


def template_from_dict(data: Dict[str, Any]) -> AnyPromptTemplate:
    """Build a template from its dictionary definition.

    A definition with a ``"messages"`` key becomes a
    :class:`ChatPromptTemplate`; anything else a :class:`PromptTemplate`
    built from ``"system"``, ``"few_shot"`` and ``"user"``.

    Raises
    ------
    KeyError
        If ``"name"`` is missing.
    TypeError
        If fields have invalid types.
    ValueError
        If ``"name"`` is empty.
    """
    if "name" not in data:
        raise KeyError("Template definition missing required key: 'name'")
    name = data["name"]
    if not isinstance(name, str):
        raise TypeError(f"Template 'name' must be a str, got {type(name)!r}")
    if not name.strip():
        raise ValueError("Template 'name' must be a non-empty string")

    if "messages" in data:
        messages = data["messages"]
        if not isinstance(messages, list) or not all(isinstance(m, dict) for m in messages):
            raise TypeError("Template 'messages' must be a list of dicts")
        return ChatPromptTemplate(name=name, messages=messages)

    few_shot = data.get("few_shot")
    if few_shot is not None and not isinstance(few_shot, list):
        raise TypeError(f"Template 'few_shot' must be a list or None, got {type(few_shot)!r}")
    return PromptTemplate(
        name=name,
        system=data.get("system"),
        few_shot=few_shot,
        user=data.get("user") or "",
    )


class PromptBuilder:
    """Registry and factory for prompt templates."""

    def __init__(self):
        self.templates: Dict[str, AnyPromptTemplate] = {}

    def register(self, template: AnyPromptTemplate):
        """Register a template instance under its name, replacing any previous one."""
        if template.name in self.templates:
            warnings.warn(f"Overwriting existing prompt template: {template.name}")
        self.templates[template.name] = template

    def register_from_dict(self, data: Dict[str, Any]):
        """Register a new template from its dictionary definition.

        See :func:`template_from_dict` for the accepted shapes.
        """
        self.register(template_from_dict(data))

    def _register_loaded(self, data: Any, origin: str) -> List[str]:
        if isinstance(data, dict):
            items = [data]
        elif isinstance(data, list):
            items = data
        else:
            raise TypeError(f"{origin} must contain an object or list of objects, got {type(data)!r}")

        registered: List[str] = []
        for item in items:
            if not isinstance(item, dict):
                raise TypeError(f"Template list items must be dicts, got {type(item)!r}")
            self.register_from_dict(item)
            registered.append(item["name"])
        return registered

    def register_from_file(self, path: Union[Path, str], base_dir: Optional[Path] = None) -> List[str]:
        """Register synthesizer templates from a user ``.json`` file.

        This is how the ``prompts`` config entries override the packaged
        ``text_qa`` template. A relative ``path`` is resolved against
        ``base_dir`` (the config file's directory when loaded by the
        container). Returns the registered names, in file order.
        """
        p = Path(path)
        if not p.is_absolute() and base_dir is not None:
            p = base_dir / p
        p = p.resolve()
        if not p.exists():
            raise FileNotFoundError(f"Prompt file not found: {p}")
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported file type: {p.suffix}")

        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return self._register_loaded(data, "Prompt file")

    def register_from_package(self, package: str, resource_path: str) -> List[str]:
        """Register templates shipped as package data, e.g. ``cirrus_rag.prompts``.

        A missing package or resource raises ``FileNotFoundError``.
        """
        if not resource_path.lower().endswith(".json"):
            raise ValueError(f"Unsupported resource type: {resource_path}")

        try:
            res = resources.files(package).joinpath(resource_path)
        except ModuleNotFoundError as e:
            raise FileNotFoundError(f"Could not locate resource '{resource_path}' in package '{package}'") from e

        if not res.is_file():
            raise FileNotFoundError(f"Prompt resource not found: pkg:{package}:{resource_path}")

        data = json.loads(res.read_text(encoding="utf-8"))
        return self._register_loaded(data, "Prompt resource")

    def register_from_source(self, source: str, base_dir: Optional[Path] = None) -> List[str]:
        """Register templates from a ``prompts`` config entry.

        ``pkg:<package>:<resource>`` reads package data, as
        :data:`DEFAULT_PROMPTS_SOURCE` does for ``default.json``. Anything
        else, with or without a ``file:`` prefix, is a JSON file path.
        """
        if not isinstance(source, str):
            raise TypeError(f"source must be a str, got {type(source)!r}")

        if source.startswith("pkg:"):
            rest = source[len("pkg:"):]
            if ":" not in rest:
                raise ValueError("pkg: sources must be of the form 'pkg:<package>:<resource_path>'")
            package, resource_path = rest.split(":", 1)
            return self.register_from_package(package.strip(), resource_path.strip())

        if source.startswith("file:"):
            return self.register_from_file(Path(source[len("file:"):].strip()), base_dir=base_dir)

        return self.register_from_file(Path(source), base_dir=base_dir)

    def list_prompts(self) -> List[str]:
        return sorted(self.templates.keys())

    def has_prompt(self, name: str) -> bool:
        return name in self.templates

    def get_template(self, name: str) -> AnyPromptTemplate:
        """Look up the template a synthesizer's ``prompt_name`` points at.

        Unknown names raise ``KeyError`` listing what is registered.
        """
        if name not in self.templates:
            available = ", ".join(self.list_prompts())
            raise KeyError(f"No template registered under name: {name}. Available: [{available}]")
        return self.templates[name]

    def build(self, name: str, **kwargs) -> Union[str, List[Dict[str, str]]]:
        """Render a registered template by name."""
        return self.get_template(name).render(**kwargs)


def load_default_prompts() -> PromptBuilder:
    """Return a builder holding the packaged default templates."""
    builder = PromptBuilder()
    builder.register_from_source(DEFAULT_PROMPTS_SOURCE)
    return builder
