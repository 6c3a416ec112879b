from __future__ import annotations

import logging

from utils.logger import NO_REQUEST, RequestContextFilter


def _record() -> logging.LogRecord:
    return logging.LogRecord("complaints", logging.INFO, __file__, 1, "API request", None, None)


def test_records_outside_a_request_get_a_placeholder() -> None:
    record = _record()
    assert RequestContextFilter().filter(record) is True
    assert record.request_summary == NO_REQUEST


def test_request_summary_names_method_path_ip_and_agent(app) -> None:
    with app.test_request_context(
        "/api/complaints?status=pending",
        method="GET",
        headers={"User-Agent": "pytest-agent", "X-Forwarded-For": "203.0.113.9"},
        environ_base={"REMOTE_ADDR": "10.0.0.7"},
    ):
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request_summary == "GET /api/complaints?status=pending - IP: 10.0.0.7 - UA: pytest-agent"

        trusted = _record()
        RequestContextFilter(trust_proxy=True).filter(trusted)
        assert "IP: 203.0.113.9" in trusted.request_summary


def test_missing_agent_is_reported_as_unknown(app) -> None:
    with app.test_request_context("/api/", headers={"User-Agent": ""}, environ_base={"REMOTE_ADDR": "10.0.0.8"}):
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request_summary.endswith("UA: unknown")


def test_log_file_carries_the_request_summary(make_app) -> None:
    application = make_app(LOG_LEVEL="INFO")
    application.test_client().get("/api/", headers={"User-Agent": "pytest-agent"})
    for handler in application.logger.handlers:
        handler.flush()
    log_path = f"{application.config['LOG_DIR']}/app.log"
    with open(log_path, encoding="utf-8") as handle:
        contents = handle.read()
    assert "GET /api/ - IP: 127.0.0.1 - UA: pytest-agent | API request" in contents
