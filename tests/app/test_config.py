"""Tests for configuration loading."""

from __future__ import annotations

import json

import pytest

from nameplate.app.config import Settings, load_settings


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = load_settings(env={})
    assert settings.vision.model == "gpt-4o-mini"
    assert settings.vision.timeout == 60.0
    assert settings.ocr.timeout == 30.0
    assert settings.throttle.max_requests_per_minute == 450
    assert settings.storage.backend == "local"
    assert settings.openai_api_key is None


def test_file_and_environment(tmp_path):
    config_path = tmp_path / "custom.json"
    config_path.write_text(json.dumps({
        "vision": {"model": "gpt-4o", "max_retries": 5},
        "storage": {"backend": "supabase"},
        "paths": {"db_path": "data/test.db"},
    }))
    env = {
        "NAMEPLATE_CONFIG": str(config_path),
        "OPENAI_API_KEY": "sk-test",
        "OCR_SPACE_API_KEY": "ocr-test",
        "SUPABASE_URL": "https://project.supabase.test",
        "SUPABASE_SERVICE_KEY": "service",
    }
    settings = load_settings(env=env)
    assert settings.vision.model == "gpt-4o"
    assert settings.vision.max_retries == 5
    assert settings.vision.backoff_base_seconds == 2.0
    assert settings.storage.supabase_url == "https://project.supabase.test"
    assert settings.paths.db_path == "data/test.db"
    assert settings.openai_api_key == "sk-test"
    assert settings.ocr_api_key == "ocr-test"
    assert settings.supabase_service_key == "service"


def test_explicit_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "nope.json"), env={})


def test_unknown_keys_rejected():
    with pytest.raises(ValueError, match="timeoutt"):
        Settings.from_dict({"ocr": {"timeoutt": 5}}, env={})


def test_unknown_backend_rejected():
    with pytest.raises(ValueError, match="backend"):
        Settings.from_dict({"storage": {"backend": "s3"}}, env={})
