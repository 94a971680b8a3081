"""CSV table parser - delimited deposit exports.

Decodes the upload, parses it with the csv module and returns the first
non-blank row as headers. Cell values are kept verbatim; vendors pad
headers with spaces and the header resolver copes with that later.
"""

import csv
import io
import logging
from typing import List, Optional

import chardet

from domain.deposit_import.errors import DepositFileParseError, MissingHeaderRowError
from domain.deposit_import.parsed_table import ParsedTable, is_blank_row
from domain.deposit_import.ports import TableParserPort

logger = logging.getLogger(__name__)

UTF8_BOM = b'\xef\xbb\xbf'


class CsvTableParser(TableParserPort):
    """CSV parser.

    Features:
    - BOM-aware UTF-8 decoding, chardet detection for other encodings
    - RFC 4180 quoting (embedded commas, quotes and newlines)
    - Greedy blank line skipping (rows whose cells are all whitespace)
    """

    EXTENSIONS = ('.csv',)
    MIME_TYPES = ('text/csv', 'application/csv')

    def supports(self, file_name: str, mime_type: Optional[str] = None) -> bool:
        lowered = (file_name or '').lower()
        return lowered.endswith(self.EXTENSIONS) or mime_type in self.MIME_TYPES

    @property
    def version(self) -> str:
        return "csv_v1"

    @property
    def priority(self) -> int:
        return 10

    async def parse(self, file_bytes: bytes, file_name: str) -> ParsedTable:
        encoding = self._detect_encoding(file_bytes)
        text = file_bytes.decode(encoding, errors='replace')
        logger.debug(f"Decoding {file_name} as {encoding}")

        rows = self._read_rows(text)
        if not rows:
            raise MissingHeaderRowError("CSV file is missing a header row")

        headers, data_rows = rows[0], rows[1:]
        logger.info(f"Parsed CSV {file_name}: {len(headers)} columns, {len(data_rows)} rows")
        return ParsedTable(headers=headers, rows=data_rows)

    def _detect_encoding(self, file_bytes: bytes) -> str:
        """Detect file encoding.

        Tries UTF-8 (with or without BOM) first, then chardet, then falls
        back to ISO-8859-1 and Windows-1252.

        Args:
            file_bytes: Raw file bytes

        Returns:
            Encoding name usable with bytes.decode()
        """
        if file_bytes.startswith(UTF8_BOM):
            return 'utf-8-sig'

        try:
            file_bytes.decode('utf-8')
            return 'utf-8'
        except UnicodeDecodeError:
            pass

        detected = chardet.detect(file_bytes).get('encoding')
        for encoding in (detected, 'iso-8859-1', 'windows-1252'):
            if not encoding:
                continue
            try:
                file_bytes.decode(encoding)
                return encoding
            except (UnicodeDecodeError, LookupError):
                continue

        return 'windows-1252'

    def _read_rows(self, text: str) -> List[List[str]]:
        try:
            reader = csv.reader(io.StringIO(text, newline=''), strict=True)
            return [row for row in reader if row and not is_blank_row(row)]
        except csv.Error as e:
            logger.warning(f"CSV parsing failed: {e}")
            raise DepositFileParseError(f"Unable to parse CSV file: {e}", code="csv_parse_error") from e
