"""Observability for deposit imports.

Provides structured logging, import correlation IDs and Prometheus metrics.
"""

from .logging_config import configure_logging, get_logger
from .metrics import (
    deposit_files_parsed_total,
    deposit_parse_duration_seconds,
    deposit_rows_parsed,
    template_matches_total,
    header_resolutions_total,
)
from .import_context import import_id_var, get_import_id, set_import_id, generate_import_id

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "deposit_files_parsed_total",
    "deposit_parse_duration_seconds",
    "deposit_rows_parsed",
    "template_matches_total",
    "header_resolutions_total",
    # Import ID
    "import_id_var",
    "get_import_id",
    "set_import_id",
    "generate_import_id",
]
