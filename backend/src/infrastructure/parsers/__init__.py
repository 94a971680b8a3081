"""Table parser implementations - Concrete adapters for the TableParserPort.

Contains parsers for CSV, Excel and text-based PDF deposit reports.
"""

from .csv_table_parser import CsvTableParser
from .deposit_file_parser import parse_deposit_file
from .excel_table_parser import ExcelTableParser
from .parser_registry import ParserRegistry, get_global_registry
from .pdf_table_parser import PdfTableParser

__all__ = [
    "CsvTableParser",
    "ExcelTableParser",
    "PdfTableParser",
    "ParserRegistry",
    "get_global_registry",
    "parse_deposit_file",
]
