"""cirrus_rag.generation

LLM interfaces and prompt templates.

Modules
-------
llm_interface
    Provider-agnostic LLM interface and factory.
prompt_builder
    Jinja2 prompt templates and their registry.
"""
