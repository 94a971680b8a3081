"""Domain layer for commission deposit import.

Turns vendor deposit reports into a header/row table and decides which
column feeds which canonical field: header normalization and resolution,
the target catalog, suggestion scoring and the versioned mapping config.
"""

from .errors import (
    DepositFileParseError,
    MissingHeaderRowError,
    PdfNoTableError,
    PdfNoTextError,
    PdfPasswordProtectedError,
    PdfUnreadableError,
    UnsupportedFileTypeError,
)
from .header_resolver import HeaderResolution, resolve_spreadsheet_header
from .normalize import normalize_key
from .parsed_table import ParsedTable
