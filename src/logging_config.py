"""Structured logging configuration.

Console output is plain text. logs/app.log and logs/error.log hold one JSON
object per line, tagged with the service name and any alert context bound
through get_logger.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from pythonjsonlogger import jsonlogger

from src.config import settings

SERVICE_NAME = "price-alert-service"

# Context keys promoted to top-level JSON fields when present on a record
CONTEXT_FIELDS = ("alert_id", "product_id", "user_id", "channel")

# Libraries that log every request or statement at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "urllib3")


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps records with the service and alert context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.utcnow().isoformat() + 'Z'
        log_record['service'] = SERVICE_NAME
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source'] = f"{record.filename}:{record.lineno}"

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value


class ContextFormatter(logging.Formatter):
    """Console formatter that appends bound context as key=value pairs."""

    def format(self, record):
        line = super().format(record)
        context = " ".join(
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        return f"{line} [{context}]" if context else line


def setup_logging(base_dir: str | Path | None = None, level: str | None = None):
    """Configure logging for the service.

    Args:
        base_dir: Directory to place logs/ in. Defaults to the working directory.
        level: Root level name. Defaults to settings.log_level.
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / "logs"
    logs_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.log_level).upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        ContextFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    json_formatter = ServiceJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    json_handler = logging.FileHandler(logs_dir / "app.log")
    json_handler.setFormatter(json_formatter)
    root_logger.addHandler(json_handler)

    # Failed notifications and deactivations land here
    error_handler = logging.FileHandler(logs_dir / "error.log")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(json_formatter)
    root_logger.addHandler(error_handler)

    if not settings.debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class AlertLoggerAdapter(logging.LoggerAdapter):
    """Binds alert context to every record; per-call extra wins on conflict."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> AlertLoggerAdapter:
    """
    Get a logger bound to alert context.

    Args:
        name: Logger name (usually __name__)
        **context: Context fields, e.g. alert_id=12, product_id=3

    Returns:
        AlertLoggerAdapter carrying the context
    """
    return AlertLoggerAdapter(logging.getLogger(name), context)
