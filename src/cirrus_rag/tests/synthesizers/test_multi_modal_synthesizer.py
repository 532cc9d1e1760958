import asyncio

import pytest

from llama_index.core.base.base_retriever import BaseRetriever
from llama_index.core.base.response.schema import Response
from llama_index.core.callbacks import CallbackManager
from llama_index.core.query_engine import RetrieverQueryEngine
from llama_index.core.schema import ImageNode, MetadataMode, NodeWithScore, QueryBundle, TextNode

from cirrus_rag.common.errors import InvalidPromptShapeError
from cirrus_rag.common.schemas import ImagePart, TextPart
from cirrus_rag.generation.prompt_builder import ChatPromptTemplate, PromptTemplate
from cirrus_rag.synthesizers.multi_modal import MultiModalResponseSynthesizer


class DummyLLM:
    """
    Records every multi-part prompt it receives and returns a fixed answer.
    """

    def __init__(self, answer="an answer"):
        self.answer = answer
        self.calls = []

    async def apredict(self, parts, **kwargs):
        self.calls.append((list(parts), kwargs))
        return self.answer


class DelayedConverter:
    """
    Converts image nodes to fake data URLs after a per-node delay, so that
    conversions complete in a different order from the input.
    """

    def __init__(self, delays):
        self.delays = delays
        self.finished = []

    async def __call__(self, node):
        await asyncio.sleep(self.delays.get(node.node_id, 0))
        self.finished.append(node.node_id)
        return f"data:image/png;base64,{node.node_id}"


class StaticRetriever(BaseRetriever):
    """Retriever returning a fixed list of scored nodes."""

    def __init__(self, nodes):
        super().__init__()
        self.nodes = nodes

    def _retrieve(self, query_bundle):
        return list(self.nodes)


def _text(node_id, text, **kwargs):
    return NodeWithScore(node=TextNode(id_=node_id, text=text, **kwargs), score=1.0)


def _image(node_id, **kwargs):
    return NodeWithScore(node=ImageNode(id_=node_id, **kwargs), score=0.5)


SIMPLE_TEMPLATE = PromptTemplate(name="simple", user="{{ context }}|{{ query }}")


def test_prompt_has_text_first_then_images_in_input_order():
    """
    Test that text and image nodes interleaved in the input produce one text
    part followed by the images in input order, whatever order conversions
    finish in.
    """
    nodes = [
        _image("img-a"),
        _text("t1", "alpha"),
        _image("img-b"),
        _text("t2", "beta"),
        _image("img-c"),
    ]
    converter = DelayedConverter({"img-a": 0.03, "img-b": 0.0, "img-c": 0.01})
    llm = DummyLLM()
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=SIMPLE_TEMPLATE, image_converter=converter)

    synth.synthesize("what?", nodes)

    (parts, _), = llm.calls
    assert len(parts) == 4
    assert parts[0] == TextPart(text="alpha\n\nbeta|what?")
    assert [p.url for p in parts[1:]] == [
        "data:image/png;base64,img-a",
        "data:image/png;base64,img-b",
        "data:image/png;base64,img-c",
    ]
    assert all(isinstance(p, ImagePart) for p in parts[1:])
    assert converter.finished != ["img-a", "img-b", "img-c"]


def test_text_only_nodes_give_single_part():
    llm = DummyLLM()
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=SIMPLE_TEMPLATE)

    synth.synthesize("q", [_text("t1", "only text")])

    (parts, _), = llm.calls
    assert parts == [TextPart(text="only text|q")]


def test_no_nodes_still_calls_llm_with_empty_context():
    llm = DummyLLM()
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=SIMPLE_TEMPLATE)

    response = synth.synthesize("q", [])

    (parts, _), = llm.calls
    assert parts == [TextPart(text="|q")]
    assert response.source_nodes == []


def test_response_carries_answer_and_input_nodes_as_sources():
    nodes = [_text("t1", "alpha"), _image("img-a")]
    synth = MultiModalResponseSynthesizer(
        llm=DummyLLM(answer="42"),
        text_qa_template=SIMPLE_TEMPLATE,
        image_converter=DelayedConverter({}),
    )

    response = synth.synthesize("q", nodes)

    assert isinstance(response, Response)
    assert response.response == "42"
    assert response.source_nodes == nodes


def test_additional_source_nodes_are_appended_but_not_prompted():
    llm = DummyLLM()
    extra = _text("x1", "not in prompt")
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=SIMPLE_TEMPLATE)

    response = synth.synthesize("q", [_text("t1", "alpha")], additional_source_nodes=[extra])

    assert [n.node.node_id for n in response.source_nodes] == ["t1", "x1"]
    (parts, _), = llm.calls
    assert "not in prompt" not in parts[0].text


def test_streaming_is_rejected_before_calling_llm():
    """
    Test that streaming raises NotImplementedError and never reaches the LLM.
    """
    llm = DummyLLM()
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=SIMPLE_TEMPLATE)

    with pytest.raises(NotImplementedError):
        synth.synthesize("q", [_text("t1", "alpha")], streaming=True)
    with pytest.raises(NotImplementedError):
        asyncio.run(synth.asynthesize("q", [_text("t1", "alpha")], streaming=True))

    assert llm.calls == []


def test_chat_template_is_rejected_before_image_conversion():
    """
    Test that a template rendering to messages raises InvalidPromptShapeError
    without converting any image or calling the LLM.
    """
    llm = DummyLLM()
    converter = DelayedConverter({})
    chat = ChatPromptTemplate(name="chat", messages=[{"role": "user", "content": "{{ context }}"}])
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=chat, image_converter=converter)

    with pytest.raises(InvalidPromptShapeError):
        synth.synthesize("q", [_text("t1", "alpha"), _image("img-a")])

    assert converter.finished == []
    assert llm.calls == []


def test_query_bundle_is_accepted():
    llm = DummyLLM()
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=SIMPLE_TEMPLATE)

    asyncio.run(synth.asynthesize(QueryBundle(query_str="bundled"), [_text("t1", "alpha")]))

    (parts, _), = llm.calls
    assert parts[0].text.endswith("|bundled")


def test_metadata_mode_controls_rendered_context():
    node = _text("t1", "body", metadata={"source": "guide.pdf"})
    llm_none, llm_all = DummyLLM(), DummyLLM()

    MultiModalResponseSynthesizer(llm=llm_none, text_qa_template=SIMPLE_TEMPLATE).synthesize("q", [node])
    MultiModalResponseSynthesizer(
        llm=llm_all, text_qa_template=SIMPLE_TEMPLATE, metadata_mode=MetadataMode.ALL
    ).synthesize("q", [node])

    assert "guide.pdf" not in llm_none.calls[0][0][0].text
    assert "guide.pdf" in llm_all.calls[0][0][0].text


def test_default_template_and_inline_image_conversion():
    """
    Test the packaged text_qa template together with the default converter
    on an inline base64 image.
    """
    llm = DummyLLM()
    synth = MultiModalResponseSynthesizer(llm=llm)

    synth.synthesize(
        "What is shown?",
        [_text("t1", "A chart of rainfall."), _image("img-a", image="QUJD", image_mimetype="image/jpeg")],
    )

    (parts, _), = llm.calls
    assert "A chart of rainfall." in parts[0].text
    assert "Query: What is shown?" in parts[0].text
    assert parts[1] == ImagePart(url="data:image/jpeg;base64,QUJD")


def test_llm_kwargs_are_forwarded():
    llm = DummyLLM()
    synth = MultiModalResponseSynthesizer(llm=llm, text_qa_template=SIMPLE_TEMPLATE)

    synth.synthesize("q", [_text("t1", "alpha")], temperature=0.1)

    assert llm.calls[0][1] == {"temperature": 0.1}


def test_prompts_can_be_read_and_replaced():
    synth = MultiModalResponseSynthesizer(llm=DummyLLM(), text_qa_template=SIMPLE_TEMPLATE)
    replacement = PromptTemplate(name="other", user="{{ query }}")

    prompts = synth.get_prompts()
    assert list(prompts) == ["text_qa_template"]
    assert prompts["text_qa_template"].name == "simple"
    assert prompts["text_qa_template"].user == SIMPLE_TEMPLATE.user

    synth.update_prompts({})
    assert synth.text_qa_template is SIMPLE_TEMPLATE

    synth.update_prompts({"text_qa_template": None})
    assert synth.text_qa_template is SIMPLE_TEMPLATE

    synth.update_prompts({"text_qa_template": replacement})
    assert synth.text_qa_template is replacement


def test_callback_manager_defaults_to_settings_and_can_be_injected():
    """
    Test that the synthesizer always carries a callback manager, which
    RetrieverQueryEngine reads when it wraps the synthesizer.
    """
    default = MultiModalResponseSynthesizer(llm=DummyLLM(), text_qa_template=SIMPLE_TEMPLATE)
    manager = CallbackManager([])
    injected = MultiModalResponseSynthesizer(
        llm=DummyLLM(), text_qa_template=SIMPLE_TEMPLATE, callback_manager=manager
    )

    assert isinstance(default.callback_manager, CallbackManager)
    assert injected.callback_manager is manager


def test_synthesizer_plugs_into_retriever_query_engine():
    """
    Test that a RetrieverQueryEngine built around the synthesizer answers a
    query from the retriever's nodes.
    """
    llm = DummyLLM(answer="from engine")
    retriever = StaticRetriever([_text("t1", "alpha"), _image("img-a")])
    synth = MultiModalResponseSynthesizer(
        llm=llm, text_qa_template=SIMPLE_TEMPLATE, image_converter=DelayedConverter({})
    )

    engine = RetrieverQueryEngine(retriever=retriever, response_synthesizer=synth)
    response = engine.query("what?")

    assert response.response == "from engine"
    assert [n.node.node_id for n in response.source_nodes] == ["t1", "img-a"]
    (parts, _), = llm.calls
    assert parts[0] == TextPart(text="alpha|what?")
    assert parts[1] == ImagePart(url="data:image/png;base64,img-a")
