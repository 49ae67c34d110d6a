import json
import logging

import pytest

from expense_desk.core.config import Settings, get_settings, normalize_api_url
from expense_desk.core.logging import ContextIdFilter, JsonFormatter, request_id_ctx, session_id_ctx


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("http://localhost:5001", "http://localhost:5001/api"),
        ("http://localhost:5001/", "http://localhost:5001/api"),
        ("https://store.example.com/api/", "https://store.example.com/api"),
    ],
)
def test_normalize_api_url(raw, expected):
    assert normalize_api_url(raw) == expected


def test_defaults():
    settings = Settings()
    settings.init_post_load()
    assert settings.page_size == 15
    assert settings.close_delay_seconds == 2.0
    assert settings.http_retries == 2


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PAGE_SIZE", "20")
    monkeypatch.setenv("API_BASE_URL", "http://store.internal:8080")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.page_size == 20
        assert settings.api_base_url == "http://store.internal:8080/api"
    finally:
        get_settings.cache_clear()


@pytest.mark.parametrize(
    "field,value",
    [("page_size", 0), ("close_delay_seconds", -1), ("http_retries", -1), ("session_idle_seconds", 0)],
)
def test_out_of_range_values_rejected(field, value):
    settings = Settings(**{field: value})
    with pytest.raises(ValueError):
        settings.init_post_load()


def test_json_log_lines_carry_context_ids():
    record = logging.LogRecord("expense_desk.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    rid = request_id_ctx.set("req-1")
    sid = session_id_ctx.set("sess-1")
    try:
        ContextIdFilter().filter(record)
    finally:
        request_id_ctx.reset(rid)
        session_id_ctx.reset(sid)
    line = json.loads(JsonFormatter().format(record))
    assert line["message"] == "hello world"
    assert line["request_id"] == "req-1"
    assert line["session_id"] == "sess-1"
    assert line["level"] == "INFO"


def test_json_log_lines_include_known_extras_only():
    record = logging.LogRecord("expense_desk.workflow", logging.INFO, __file__, 1, "saved", (), None)
    record.record_id = "exp-1"
    record.category = "home"
    record.unrelated = "x"
    line = json.loads(JsonFormatter().format(record))
    assert line["record_id"] == "exp-1"
    assert line["category"] == "home"
    assert "unrelated" not in line
    assert line["request_id"] == "-"
