import logging
import sys
from datetime import datetime, timezone

from flask import Flask, has_request_context, request
from pythonjsonlogger import jsonlogger


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.method = request.method
            record.path = request.path
        else:
            record.method = None
            record.path = None
        return True


class _JsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def setup_logging(app: Flask) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    root.setLevel(level)

    handler = logging.StreamHandler(stream=sys.stdout)
    if app.config.get("LOG_JSON"):
        formatter: logging.Formatter = _JsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s %(method)s %(path)s",
            json_default=str,
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)

    for noisy in ("werkzeug", "urllib3"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).debug("Logging configured at %s", logging.getLevelName(level))
