import json

import pytest

from pharma_ocr.config import (
    DEFAULT_OPENROUTER_MODEL,
    load_routing_table,
    load_settings,
)
from pharma_ocr.orchestrator.router import RoutingConfigError

_KEYS = (
    "GOOGLE_VISION_API_KEY",
    "OPEN_ROUTER_API_KEY",
    "OPENROUTER_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "TESSERACT_CMD",
    "TESSERACT_TIMEOUT",
    "PROVIDER_TIMEOUT",
    "USAGE_DB_PATH",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)


def test_settings_from_dotenv(tmp_path):
    (tmp_path / ".env").write_text(
        "GOOGLE_VISION_API_KEY=gv-key\nOPENAI_API_KEY='sk-abc'\nTESSERACT_TIMEOUT=7\n",
        encoding="utf-8",
    )
    sub = tmp_path / "src"
    sub.mkdir()
    settings = load_settings(str(sub))
    assert settings.google_vision_api_key == "gv-key"
    assert settings.openai_api_key == "sk-abc"
    assert settings.openrouter_api_key is None
    assert settings.openrouter_model == DEFAULT_OPENROUTER_MODEL
    assert settings.tesseract_timeout == 7.0


def test_environment_wins_over_dotenv(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("GOOGLE_VISION_API_KEY=from-file\n", encoding="utf-8")
    monkeypatch.setenv("GOOGLE_VISION_API_KEY", "from-env")
    assert load_settings(str(tmp_path)).google_vision_api_key == "from-env"


def test_bad_numbers_fall_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("TESSERACT_TIMEOUT", "soon")
    monkeypatch.setenv("PROVIDER_TIMEOUT", "-3")
    settings = load_settings(str(tmp_path))
    assert settings.tesseract_timeout == 10.0
    assert settings.provider_timeout == 30.0


def test_default_usage_db_path_under_project_var(tmp_path):
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
    settings = load_settings(str(tmp_path))
    assert settings.usage_db_path == str(tmp_path / "var" / "usage" / "usage.sqlite3")


def test_routing_json_replaces_default(tmp_path):
    data = {
        "providers": {
            "vision": {"adapter": "google-vision", "family": "vision_ocr", "cost_per_call": 0.002},
            "local": {"adapter": "tesseract", "family": "local_ocr"},
        },
        "plans": {
            "free": [{"provider": "vision", "priority": 1}],
            "basic": ["vision"],
            "standard": ["vision"],
            "business": ["vision"],
        },
        "terminal": "local",
    }
    (tmp_path / "routing.json").write_text(json.dumps(data), encoding="utf-8")
    table = load_routing_table(str(tmp_path))
    assert table.terminal == "local"
    assert table.providers["vision"].cost_per_call == 0.002


def test_invalid_routing_json_raises(tmp_path):
    (tmp_path / "routing.json").write_text('{"providers": {}, "plans": {}, "terminal": "x"}', encoding="utf-8")
    with pytest.raises(RoutingConfigError):
        load_routing_table(str(tmp_path))
    (tmp_path / "routing.json").write_text("{broken", encoding="utf-8")
    with pytest.raises(RoutingConfigError):
        load_routing_table(str(tmp_path))
