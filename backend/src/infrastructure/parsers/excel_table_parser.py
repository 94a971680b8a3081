"""Excel table parser - .xlsx via openpyxl, legacy .xls via xlrd.

Only the first worksheet is read. Cells are rendered as strings the way
they would appear in a CSV export of the same sheet.
"""

import asyncio
import io
import logging
from typing import Any, List, Optional

import openpyxl
import xlrd

from domain.deposit_import.errors import DepositFileParseError, MissingHeaderRowError
from domain.deposit_import.parsed_table import ParsedTable, cell_to_string, is_blank_row
from domain.deposit_import.ports import TableParserPort

logger = logging.getLogger(__name__)

XLSX_MAGIC = b'PK\x03\x04'
XLS_MAGIC = b'\xd0\xcf\x11\xe0'


class ExcelTableParser(TableParserPort):
    """Excel parser for .xlsx and .xls workbooks.

    Workbook decoding is CPU bound and runs in a worker thread.
    """

    EXTENSIONS = ('.xlsx', '.xls')
    MIME_TYPES = (
        'application/vnd.ms-excel',
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    )

    def supports(self, file_name: str, mime_type: Optional[str] = None) -> bool:
        lowered = (file_name or '').lower()
        return lowered.endswith(self.EXTENSIONS) or mime_type in self.MIME_TYPES

    @property
    def version(self) -> str:
        return "excel_v1"

    @property
    def priority(self) -> int:
        return 10

    async def parse(self, file_bytes: bytes, file_name: str) -> ParsedTable:
        rows = await asyncio.to_thread(self._read_rows, file_bytes, file_name)
        rows = [row for row in rows if row and not is_blank_row(row)]
        if not rows:
            raise MissingHeaderRowError("Spreadsheet is missing a header row")

        headers, data_rows = rows[0], rows[1:]
        logger.info(f"Parsed Excel {file_name}: {len(headers)} columns, {len(data_rows)} rows")
        return ParsedTable(headers=headers, rows=data_rows)

    def _is_legacy_xls(self, file_bytes: bytes, file_name: str) -> bool:
        if file_bytes.startswith(XLS_MAGIC):
            return True
        if file_bytes.startswith(XLSX_MAGIC):
            return False
        return (file_name or '').lower().endswith('.xls')

    def _read_rows(self, file_bytes: bytes, file_name: str) -> List[List[str]]:
        try:
            if self._is_legacy_xls(file_bytes, file_name):
                return self._read_xls(file_bytes)
            return self._read_xlsx(file_bytes)
        except DepositFileParseError:
            raise
        except Exception as e:
            logger.warning(f"Unable to open workbook {file_name}: {e}")
            raise DepositFileParseError(
                "Unable to read Excel file. The file may be corrupted; please re-export it "
                "or upload it as CSV.",
                code="excel_unreadable",
            ) from e

    def _read_xlsx(self, file_bytes: bytes) -> List[List[str]]:
        workbook = openpyxl.load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
        try:
            if not workbook.worksheets:
                return []
            sheet = workbook.worksheets[0]
            logger.debug(f"Reading worksheet: {sheet.title}")
            return [
                [cell_to_string(value) for value in row]
                for row in sheet.iter_rows(values_only=True)
            ]
        finally:
            workbook.close()

    def _read_xls(self, file_bytes: bytes) -> List[List[str]]:
        workbook = xlrd.open_workbook(file_contents=file_bytes)
        if workbook.nsheets == 0:
            return []
        sheet = workbook.sheet_by_index(0)
        logger.debug(f"Reading worksheet: {sheet.name}")
        return [
            [self._xls_cell_value(sheet.cell(row_idx, col_idx), workbook.datemode) for col_idx in range(sheet.ncols)]
            for row_idx in range(sheet.nrows)
        ]

    def _xls_cell_value(self, cell: Any, datemode: int) -> str:
        if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
            return ""
        if cell.ctype == xlrd.XL_CELL_BOOLEAN:
            return cell_to_string(bool(cell.value))
        if cell.ctype == xlrd.XL_CELL_DATE:
            return cell_to_string(xlrd.xldate_as_datetime(cell.value, datemode))
        return cell_to_string(cell.value)
