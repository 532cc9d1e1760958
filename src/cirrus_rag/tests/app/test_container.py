import json

import pytest
from llama_index.core.query_engine import RetrieverQueryEngine
from llama_index.core.schema import Document

from cirrus_rag.app.container import build_container
from cirrus_rag.cloud.index import CloudIndex
from cirrus_rag.config import GlobalConfig
from cirrus_rag.generation import llm_interface
from cirrus_rag.synthesizers.multi_modal import MultiModalResponseSynthesizer


class DummyLLM:
    def __init__(self, config):
        self.config = config

    async def apredict(self, parts, **kwargs):
        return "answer"


class DummyPlatformClient:
    """Platform client that completes ingestion on the first check."""

    def __init__(self):
        self.calls = []

    def upsert_project(self, name):
        self.calls.append("upsert_project")
        return {"id": "proj-1"}

    def upsert_pipeline(self, project_id, request):
        self.calls.append("upsert_pipeline")
        return {"id": "pipe-1"}

    def start_managed_ingestion(self, pipeline_id):
        self.calls.append("start_managed_ingestion")
        return {"id": "run-1"}

    def get_managed_ingestion(self, pipeline_id, run_id):
        self.calls.append("get_managed_ingestion")
        return {"id": run_id, "status": "SUCCESS"}


@pytest.fixture
def config():
    return GlobalConfig(
        {
            "cloud": {
                "name": "handbook",
                "project_name": "team",
                "retrieval": {"similarity_top_k": 3},
            },
            "generator_llm": {"type": "OpenAIChatLike", "model_name": "m", "api_base": "http://localhost"},
            "synthesizer": {"metadata_mode": "llm"},
        }
    )


@pytest.fixture(autouse=True)
def _dummy_llm(monkeypatch):
    monkeypatch.setattr(llm_interface, "create_llm", lambda cfg: DummyLLM(cfg))


def test_query_engine_is_wired_from_config(config):
    """
    Test that the container builds index, synthesizer and query engine from
    configuration without contacting the platform.
    """
    container = build_container(config)

    engine = container.query_engine

    assert isinstance(engine, RetrieverQueryEngine)
    assert isinstance(container.synthesizer, MultiModalResponseSynthesizer)
    assert container.synthesizer.llm.config["type"] == "OpenAIChatLike"
    assert engine.retriever.name == "handbook"
    assert engine.retriever.project_name == "team"
    assert engine.retriever.similarity_top_k == 3


def test_components_are_cached(config):
    container = build_container(config)

    assert container.index is container.index
    assert container.synthesizer is container.synthesizer


def test_missing_prompt_name_is_reported(config):
    config.raw["synthesizer"] = {"prompt_name": "absent"}
    container = build_container(config)

    with pytest.raises(ValueError, match="absent"):
        container.text_qa_template


def test_prompt_sources_resolve_relative_to_config_file(tmp_path):
    (tmp_path / "prompts.json").write_text(
        json.dumps({"name": "custom_qa", "user": "{{ context }} -> {{ query }}"}), encoding="utf-8"
    )
    (tmp_path / "config.yaml").write_text(
        "cloud:\n  name: docs\n"
        "generator_llm:\n  type: OpenAIChatLike\n"
        "synthesizer:\n  prompt_name: custom_qa\n"
        "prompts: prompts.json\n",
        encoding="utf-8",
    )

    container = build_container(GlobalConfig.load(tmp_path / "config.yaml"))

    assert container.prompt_builder.has_prompt("text_qa")
    assert container.text_qa_template.name == "custom_qa"


def test_ingest_uses_configured_pipeline(config):
    container = build_container(config)
    client = DummyPlatformClient()
    # seed the cached client
    container.__dict__["platform_client"] = client

    index = container.ingest([Document(text="hello")])

    assert isinstance(index, CloudIndex)
    assert index.params.name == "handbook"
    assert index.retrieval_defaults == {"similarity_top_k": 3}
    assert client.calls == [
        "upsert_project",
        "upsert_pipeline",
        "start_managed_ingestion",
        "get_managed_ingestion",
    ]
