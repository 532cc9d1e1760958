import pytest

from cirrus_rag.cloud.params import (
    DEFAULT_BASE_URL,
    CloudIndexParams,
    merge_params,
    resolve_api_key,
    resolve_app_url,
    resolve_base_url,
    resolve_project_name,
)


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv("CIRRUS_CLOUD_API_KEY", raising=False)
    monkeypatch.delenv("CIRRUS_CLOUD_BASE_URL", raising=False)


def test_override_wins_over_default():
    assert merge_params({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}


def test_none_override_keeps_default():
    assert merge_params({"a": 1}, {"a": None}) == {"a": 1}


def test_override_adds_new_keys():
    assert merge_params({"a": 1}, {"c": 5}) == {"a": 1, "c": 5}


def test_merge_does_not_mutate_inputs():
    defaults = {"a": 1}
    overrides = {"a": 2}

    merged = merge_params(defaults, overrides)
    merged["a"] = 99

    assert defaults == {"a": 1}
    assert overrides == {"a": 2}


def test_merge_without_overrides_copies_defaults():
    defaults = {"a": 1}
    merged = merge_params(defaults)

    assert merged == defaults
    assert merged is not defaults


def test_base_url_resolution_order(monkeypatch):
    assert resolve_base_url() == DEFAULT_BASE_URL

    monkeypatch.setenv("CIRRUS_CLOUD_BASE_URL", "https://api.env.example.com/")
    assert resolve_base_url() == "https://api.env.example.com"
    assert resolve_base_url("https://api.explicit.example.com") == "https://api.explicit.example.com"


def test_app_url_drops_api_prefix():
    assert resolve_app_url("https://api.cloud.example.com") == "https://cloud.example.com"
    assert resolve_app_url("http://localhost:8000") == "http://localhost:8000"


def test_api_key_resolution(monkeypatch):
    assert resolve_api_key() is None
    monkeypatch.setenv("CIRRUS_CLOUD_API_KEY", "env-key")
    assert resolve_api_key() == "env-key"
    assert resolve_api_key("explicit") == "explicit"


def test_index_params_are_frozen():
    params = CloudIndexParams(name="docs")

    assert params.to_dict() == {
        "name": "docs",
        "project_name": "docs",
        "api_key": None,
        "base_url": None,
    }
    with pytest.raises(AttributeError):
        params.name = "other"


def test_project_name_falls_back_to_pipeline_name():
    assert resolve_project_name(None, "docs") == "docs"
    assert resolve_project_name("team", "docs") == "team"
    assert CloudIndexParams(name="docs", project_name="team").project_name == "team"
