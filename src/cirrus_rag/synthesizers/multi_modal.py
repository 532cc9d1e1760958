"""cirrus_rag.synthesizers.multi_modal

Response synthesis over mixed text and image context.

The synthesizer renders all text nodes into one textual prompt, converts all
image nodes into inline data URLs, and sends both to the LLM as a single
multi-part prompt: the text part first, then the images in their input order.

Classes
-------
MultiModalResponseSynthesizer
    Builds one multi-part prompt from scored nodes and asks the LLM once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from llama_index.core.async_utils import asyncio_run
from llama_index.core.base.response.schema import Response
from llama_index.core.callbacks import CallbackManager
from llama_index.core.prompts.mixin import PromptDictType, PromptMixin, PromptMixinType
from llama_index.core.schema import ImageNode, MetadataMode, NodeWithScore, QueryBundle
from llama_index.core.settings import Settings

from cirrus_rag.common.errors import InvalidPromptShapeError
from cirrus_rag.common.schemas import ImagePart, PromptPart, TextPart
from cirrus_rag.generation.llm_interface import BaseLLM
from cirrus_rag.generation.prompt_builder import AnyPromptTemplate, load_default_prompts
from cirrus_rag.synthesizers.nodes import aimage_to_data_url, split_nodes_by_kind

logger = logging.getLogger("cirrus_rag.synthesizers.multi_modal")

ImageConverter = Callable[[ImageNode], Awaitable[str]]


class MultiModalResponseSynthesizer(PromptMixin):
    """Synthesize an answer from text and image nodes with one LLM call.

    Parameters
    ----------
    llm : BaseLLM
        Model that accepts multi-part prompts.
    text_qa_template : PromptTemplate or None, optional
        Template rendered with ``context`` and ``query``. Defaults to the
        packaged ``text_qa`` template. It must render to a single string.
    metadata_mode : MetadataMode, optional
        How node metadata is included in the rendered text. Defaults to
        ``MetadataMode.NONE``.
    image_converter : Callable[[ImageNode], Awaitable[str]] or None, optional
        Coroutine function turning an image node into a data URL. Defaults
        to :func:`~cirrus_rag.synthesizers.nodes.aimage_to_data_url`.
    callback_manager : CallbackManager or None, optional
        Callback manager shared with the query engine that wraps this
        synthesizer. Defaults to ``Settings.callback_manager``.

    Notes
    -----
    Streaming is not supported. Requesting it raises ``NotImplementedError``.
    """

    def __init__(
            self,
            llm: BaseLLM,
            text_qa_template: Optional[AnyPromptTemplate] = None,
            metadata_mode: MetadataMode = MetadataMode.NONE,
            image_converter: Optional[ImageConverter] = None,
            callback_manager: Optional[CallbackManager] = None,
        ):
        self.llm = llm
        self.text_qa_template = text_qa_template or load_default_prompts().get_template("text_qa")
        self.metadata_mode = metadata_mode
        self.image_converter = image_converter or aimage_to_data_url
        self.callback_manager = callback_manager or Settings.callback_manager

    def _get_prompts(self) -> PromptDictType:
        return {"text_qa_template": self.text_qa_template}

    def _get_prompt_modules(self) -> PromptMixinType:
        return {}

    def _update_prompts(self, prompts_dict: PromptDictType) -> None:
        if prompts_dict.get("text_qa_template") is not None:
            self.text_qa_template = prompts_dict["text_qa_template"]

    def _render_text_prompt(self, query: str, text_nodes: Sequence[Any]) -> str:
        context = "\n\n".join(node.get_content(metadata_mode=self.metadata_mode) for node in text_nodes)
        prompt = self.text_qa_template.render(context=context, query=query)
        if not isinstance(prompt, str):
            raise InvalidPromptShapeError(
                f"Template {getattr(self.text_qa_template, 'name', '?')!r} rendered "
                f"{type(prompt).__name__}; a single string prompt is required."
            )
        return prompt

    async def _build_prompt(
            self,
            query: str,
            nodes: Sequence[NodeWithScore],
        ) -> list[PromptPart]:
        text_nodes, image_nodes = split_nodes_by_kind(n.node for n in nodes)
        text_prompt = self._render_text_prompt(query, text_nodes)

        image_urls = await asyncio.gather(*(self.image_converter(node) for node in image_nodes))

        parts: list[PromptPart] = [TextPart(text=text_prompt)]
        parts.extend(ImagePart(url=url) for url in image_urls)
        logger.debug(
            "Assembled prompt with %d text node(s) and %d image(s)",
            len(text_nodes),
            len(image_nodes),
        )
        return parts

    async def asynthesize(
            self,
            query: Union[str, QueryBundle],
            nodes: Sequence[NodeWithScore],
            streaming: bool = False,
            additional_source_nodes: Optional[Sequence[NodeWithScore]] = None,
            **kwargs: Any,
        ) -> Response:
        """Answer ``query`` from ``nodes``.

        Parameters
        ----------
        query : str or QueryBundle
            User query.
        nodes : Sequence[NodeWithScore]
            Retrieved nodes; text and image nodes may be interleaved.
        streaming : bool, optional
            Must be ``False``.
        additional_source_nodes : Sequence[NodeWithScore] or None, optional
            Extra nodes reported as sources but not used in the prompt.
        **kwargs : Any
            Forwarded to :meth:`BaseLLM.apredict`.

        Returns
        -------
        Response
            Generated text and ``source_nodes`` equal to ``nodes`` (followed
            by any ``additional_source_nodes``).

        Raises
        ------
        NotImplementedError
            If ``streaming`` is requested.
        InvalidPromptShapeError
            If the template renders to a message list.
        """
        if streaming:
            raise NotImplementedError("Streaming is not implemented for MultiModalResponseSynthesizer")

        query_str = query.query_str if isinstance(query, QueryBundle) else str(query)
        parts = await self._build_prompt(query_str, nodes)
        text = await self.llm.apredict(parts, **kwargs)

        source_nodes = list(nodes) + list(additional_source_nodes or [])
        return Response(response=text, source_nodes=source_nodes)

    def synthesize(
            self,
            query: Union[str, QueryBundle],
            nodes: Sequence[NodeWithScore],
            streaming: bool = False,
            additional_source_nodes: Optional[Sequence[NodeWithScore]] = None,
            **kwargs: Any,
        ) -> Response:
        """Synchronous wrapper around :meth:`asynthesize`."""
        if streaming:
            raise NotImplementedError("Streaming is not implemented for MultiModalResponseSynthesizer")
        return asyncio_run(
            self.asynthesize(
                query,
                nodes,
                additional_source_nodes=additional_source_nodes,
                **kwargs,
            )
        )


__all__ = ["MultiModalResponseSynthesizer"]
