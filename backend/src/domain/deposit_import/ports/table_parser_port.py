"""TableParserPort interface for deposit file parsing.

Defines the contract that all deposit parsers (CSV, Excel, PDF) implement.
The import pipeline selects a parser through the registry without knowing
about concrete implementations.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..parsed_table import ParsedTable


class TableParserPort(ABC):
    """Port interface for deposit table parsers.

    Example implementations:
    - CsvTableParser: delimited text exports
    - ExcelTableParser: .xlsx via openpyxl, legacy .xls via xlrd
    - PdfTableParser: geometric table reconstruction from text-based PDFs
    """

    @abstractmethod
    async def parse(self, file_bytes: bytes, file_name: str) -> ParsedTable:
        """Reconstruct a header/row table from an uploaded file.

        Args:
            file_bytes: Raw file content
            file_name: Original file name (used for format details such as .xls vs .xlsx)

        Returns:
            ParsedTable whose rows are aligned to the header row

        Raises:
            DepositFileParseError: If the file cannot be turned into a table.
                Nothing partial is returned.
        """
        pass

    @abstractmethod
    def supports(self, file_name: str, mime_type: Optional[str] = None) -> bool:
        """Check if this parser handles the given file.

        Args:
            file_name: Original file name; the extension is checked case-insensitively
            mime_type: Optional MIME type reported by the uploader

        Returns:
            True if either the extension or the MIME type belongs to this parser

        Example:
            >>> CsvTableParser().supports('Report.CSV')
            True
            >>> CsvTableParser().supports('report.pdf', 'application/pdf')
            False
        """
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Parser version identifier for tracking (e.g. 'csv_v1', 'pdf_layout_v1')."""
        pass

    @property
    def file_format(self) -> str:
        """Short format label used in logs and metrics (csv, excel, pdf)."""
        return self.version.split("_", 1)[0]

    @property
    def priority(self) -> int:
        """Priority for parser selection (lower = higher priority).

        When multiple parsers support the same file, the one with the lower
        priority number is selected first. Default is 100.
        """
        return 100
