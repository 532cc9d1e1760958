import pytest

from llama_index.core.node_parser import SentenceSplitter
from llama_index.core.schema import Document

from cirrus_rag.cloud.transformations import (
    EmbeddingTransformation,
    SentenceSplitterTransformation,
    build_pipeline_create,
    default_transformations,
    to_transformation,
)


def test_default_is_single_embedding_step():
    steps = default_transformations()

    assert steps == [EmbeddingTransformation()]
    assert steps[0].to_payload()["configurable_transformation_type"] == "OPENAI_EMBEDDING"


def test_embedding_payload_omits_unset_optionals():
    payload = EmbeddingTransformation().to_payload()

    assert payload["component"] == {"model_name": "text-embedding-3-small", "embed_batch_size": 10}


def test_embedding_payload_includes_dimensions_and_key():
    payload = EmbeddingTransformation(api_key="k", dimensions=256).to_payload()

    assert payload["component"]["api_key"] == "k"
    assert payload["component"]["dimensions"] == 256


def test_sentence_splitter_is_converted():
    step = to_transformation(SentenceSplitter(chunk_size=512, chunk_overlap=20))

    assert isinstance(step, SentenceSplitterTransformation)
    assert (step.chunk_size, step.chunk_overlap) == (512, 20)
    assert step.to_payload()["configurable_transformation_type"] == "SENTENCE_AWARE_NODE_PARSER"


def test_unsupported_transformation_raises():
    with pytest.raises(TypeError, match="Unsupported transformation"):
        to_transformation(object())


def test_build_pipeline_create_payload():
    """
    Test the pipeline body: configured transformations, no data sources or sinks.
    """
    docs = [Document(text="a", doc_id="1"), Document(text="b", doc_id="2")]
    request = build_pipeline_create(name="docs", documents=docs)

    payload = request.to_payload()
    assert payload["name"] == "docs"
    assert payload["pipeline_type"] == "MANAGED"
    assert payload["data_sources"] == []
    assert payload["data_sinks"] == []
    assert len(payload["configured_transformations"]) == 1
    assert [d["id"] for d in request.document_payloads()] == ["1", "2"]


def test_empty_transformations_are_kept_empty():
    request = build_pipeline_create(name="docs", documents=[Document(text="a")], transformations=[])

    assert request.transformations == ()
