import json
import logging

from lumi.config import DEFAULT_PRIMARY_URL, Config
from lumi.logging import JSONFormatter, TextFormatter, setup_logging


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("LUMI_PRIMARY_API_KEY", " sk-test ")
    monkeypatch.setenv("LUMI_FALLBACK_URL", "https://fallback.test/v1/chat/completions")
    monkeypatch.setenv("LUMI_FALLBACK_API_KEY", "sk-fallback")
    monkeypatch.setenv("LUMI_HISTORY_LIMIT", "8")
    monkeypatch.setenv("LUMI_LOG_FORMAT", "JSON")
    monkeypatch.delenv("LUMI_PRIMARY_URL", raising=False)
    config = Config.from_env()
    assert config.primary_url == DEFAULT_PRIMARY_URL
    assert config.primary_api_key == "sk-test"
    assert config.is_configured and config.has_fallback
    assert config.history_limit == 8
    assert config.log_format == "json"
    assert config.model == "qwen-plus"


def test_config_without_key_is_not_configured(monkeypatch):
    monkeypatch.delenv("LUMI_PRIMARY_API_KEY", raising=False)
    monkeypatch.delenv("LUMI_FALLBACK_URL", raising=False)
    config = Config.from_env()
    assert not config.is_configured
    assert not config.has_fallback


def test_json_formatter_includes_lumi_extras():
    record = logging.LogRecord("lumi.test", logging.INFO, __file__, 1, "Phase %s", ("witness",), None)
    record.lumi_phase = "witness"
    record.other = "dropped"
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "Phase witness"
    assert entry["level"] == "INFO"
    assert entry["lumi_phase"] == "witness"
    assert "other" not in entry


def test_text_formatter_appends_lumi_extras():
    record = logging.LogRecord("lumi.test", logging.INFO, __file__, 1, "Applied %s", ("reset_goal",), None)
    record.lumi_action = "reset_goal"
    record.lumi_goal_id = "g-1"
    line = TextFormatter().format(record)
    assert line.endswith("lumi.test: Applied reset_goal [action=reset_goal goal_id=g-1]")


def test_setup_logging_selects_format_and_quiets_http_client():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(Config(log_format="json", log_level="INFO"))
        assert isinstance(root.handlers[-1].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
        setup_logging(Config(log_format="text", log_level="INFO"))
        assert isinstance(root.handlers[-1].formatter, TextFormatter)
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
