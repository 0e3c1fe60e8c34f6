"""Logging setup: console output plus JSON log files for crawl runs."""

import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger import jsonlogger

from shopcheck.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# Loggers that flood DEBUG output during a crawl
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "openai")

# user:password@ in proxy URLs and proxy list entries
_CREDENTIALS_RE = re.compile(r"(?P<prefix>//|\b)[^\s:/@,]+:[^\s@/,]+@(?=[\w.\-]+:\d+)")


def redact_credentials(text: str) -> str:
    """Mask proxy credentials embedded in a message."""
    return _CREDENTIALS_RE.sub(lambda m: f"{m.group('prefix')}***@", text)


class ProxyCredentialFilter(logging.Filter):
    """Rewrites records so proxy usernames and passwords never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_credentials(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level, component and source fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['component'] = component_for(record.name)
        log_record['source'] = f"{record.filename}:{record.lineno}"

        if record.funcName:
            log_record['function'] = record.funcName


def component_for(logger_name: str) -> str:
    """Subpackage a logger belongs to: "shopcheck.ingest.scraper" -> "ingest"."""
    parts = logger_name.split(".")
    if parts[0] == "shopcheck" and len(parts) > 2:
        return parts[1]
    return parts[0]


def _add_handler(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ProxyCredentialFilter())
    root.addHandler(handler)


def setup_logging(base_dir: str | Path | None = None):
    """Configure logging for crawl runs.

    Args:
        base_dir: Directory to create logs/ in (current directory by default)
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / "logs"
    logs_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    json_formatter = CustomJsonFormatter(JSON_FORMAT)
    _add_handler(
        root_logger,
        logging.StreamHandler(sys.stdout),
        logging.DEBUG if settings.debug else logging.INFO,
        logging.Formatter(CONSOLE_FORMAT),
    )
    _add_handler(root_logger, logging.FileHandler(logs_dir / "app.log"), logging.DEBUG, json_formatter)
    _add_handler(root_logger, logging.FileHandler(logs_dir / "error.log"), logging.ERROR, json_formatter)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter binding crawl context (category URL, product URL) to records."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger carrying context fields.

    Args:
        name: Logger name (usually __name__)
        **context: Fields added to every record (e.g., category_url='https://...')
    """
    return LoggerAdapter(logging.getLogger(name), context)
