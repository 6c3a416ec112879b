"""Centralized logging with rotation suitable for audit trails."""
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import has_request_context, request

from utils.security import client_ip, user_agent

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(request_summary)s | %(message)s"
NO_REQUEST = "-"


class RequestContextFilter(logging.Filter):
    """Stamp each record with ``METHOD path - IP: ip - UA: agent`` for the active request."""

    def __init__(self, trust_proxy: bool = False, agent_limit: int = 100) -> None:
        super().__init__()
        self.trust_proxy = trust_proxy
        self.agent_limit = agent_limit

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            record.request_summary = NO_REQUEST
            return True
        path = request.full_path.rstrip("?")
        agent = (user_agent() or "unknown")[: self.agent_limit]
        record.request_summary = f"{request.method} {path} - IP: {client_ip(self.trust_proxy)} - UA: {agent}"
        return True


def init_logging(app) -> logging.Logger:
    log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "app.log")

    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    request_filter = RequestContextFilter(trust_proxy=bool(app.config.get("TRUST_PROXY")))

    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    stream_handler = logging.StreamHandler()
    for handler in (file_handler, stream_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(request_filter)

    logger = logging.getLogger(app.name)
    # The factory may run more than once per process (tests, CLI); start clean.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False

    # Flask's built-in logger
    app.logger.handlers = logger.handlers
    app.logger.setLevel(level)

    logger.info("Logging initialized", extra={"path": log_path})
    return logger
