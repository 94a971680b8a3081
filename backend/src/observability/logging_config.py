"""Structured logging for deposit imports.

Every record carries the import ID of the upload being processed, so a
single upload can be followed from parsing through template matching.
Parsers attach file details through `extra=`:

    logger.warning("PDF has no text", extra={"file_name": name, "error_code": "pdf_no_text"})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from config import get_settings

from .import_context import get_import_id

# Optional `extra=` keys copied into JSON log lines when present.
IMPORT_LOG_FIELDS = ("file_name", "file_format", "error_code", "parser_version", "row_count")

# Third-party loggers that are chatty at DEBUG/INFO while reading PDFs and workbooks.
NOISY_LOGGERS = ("pdfminer", "pdfplumber", "chardet", "openpyxl")


class ImportIDFilter(logging.Filter):
    """Stamp each record with the current import ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.import_id = get_import_id()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "import_id": getattr(record, "import_id", get_import_id()),
            "message": record.getMessage(),
        }

        for key in IMPORT_LOG_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level name; defaults to Settings.LOG_LEVEL
        json_format: JSON lines if True, plain text otherwise; defaults to
            Settings.LOG_JSON
    """
    settings = get_settings()
    level_name = (level or settings.LOG_LEVEL).upper()
    use_json = settings.LOG_JSON if json_format is None else json_format

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level_name)
    handler.addFilter(ImportIDFilter())
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(import_id)s] %(name)s: %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level_name)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
