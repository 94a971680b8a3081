"""Parser Registry Initialization - Register all table parsers on startup."""

import logging

from .csv_table_parser import CsvTableParser
from .excel_table_parser import ExcelTableParser
from .parser_registry import ParserRegistry, get_global_registry
from .pdf_table_parser import PdfTableParser

logger = logging.getLogger(__name__)


def initialize_parsers() -> ParserRegistry:
    """Register the CSV, Excel and PDF parsers with the global registry.

    Safe to call repeatedly; the registry is cleared first.

    Returns:
        ParserRegistry: The populated global registry
    """
    logger.info("Initializing parser registry...")

    registry = get_global_registry()
    registry.clear()

    registry.register(CsvTableParser())
    registry.register(ExcelTableParser())
    registry.register(PdfTableParser())

    logger.info(f"Parser registry initialized with {len(registry)} parsers")
    return registry


def get_initialized_registry() -> ParserRegistry:
    """Get global registry, initializing it on first use."""
    registry = get_global_registry()
    if len(registry) == 0:
        initialize_parsers()
    return registry
