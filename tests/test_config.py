from __future__ import annotations

from studyaid.config import get_settings


def test_defaults_pipeline_sizes():
    settings = get_settings({})
    assert settings.chunk_size == 4000
    assert settings.chunk_overlap == 200
    assert settings.summary_count == 5
    assert settings.summary_max_count == 10
    assert settings.extraction_min_chars == 100


def test_defaults_embedding_model_and_dim():
    settings = get_settings({})
    assert settings.embedding_model == "text-embedding-3-small"
    assert settings.embedding_dim == 1536
    assert settings.embedding_prefix_chars == 8000


def test_upload_limit_in_bytes():
    settings = get_settings({"max_upload_size_mb": 2})
    assert settings.max_upload_bytes == 2 * 1024 * 1024


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("STUDYAID_SUMMARY_COUNT", "7")
    settings = get_settings({"environment": "test"})
    assert settings.summary_count == 7
