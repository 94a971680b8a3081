"""Unit tests for the CSV, Excel and PDF table parsers and parser selection."""

import io
from datetime import datetime

import openpyxl
import pytest

from domain.deposit_import.errors import (
    DepositFileParseError,
    MissingHeaderRowError,
    PdfNoTableError,
    PdfNoTextError,
    PdfPasswordProtectedError,
    PdfUnreadableError,
    UnsupportedFileTypeError,
)
from domain.deposit_import.parsed_table import ParsedTable, cell_to_string
from infrastructure.parsers import (
    CsvTableParser,
    ExcelTableParser,
    ParserRegistry,
    PdfTableParser,
    parse_deposit_file,
)
from infrastructure.parsers.pdf_table_parser import TextFragment
from infrastructure.parsers.registry_init import initialize_parsers


def build_xlsx(rows) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestParsedTable:
    """Test the parsed table model"""

    def test_rows_aligned_to_headers(self):
        table = ParsedTable(headers=["A", "B"], rows=[["1"], ["1", "2", "3"]])
        assert table.rows == [["1", ""], ["1", "2"]]

    def test_column_values(self):
        table = ParsedTable(headers=["A", "B"], rows=[["1", "2"], ["3", "4"]])
        assert table.column_values("B") == ["2", "4"]
        assert table.column_values("C") == []

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        (100.0, "100"),
        (12.5, "12.5"),
        (7, "7"),
        (True, "TRUE"),
        (datetime(2024, 3, 1), "2024-03-01"),
        (datetime(2024, 3, 1, 13, 30), "2024-03-01T13:30:00"),
        (" Total ", " Total "),
    ])
    def test_cell_to_string(self, value, expected):
        assert cell_to_string(value) == expected


class TestCsvTableParser:
    """Test CSV parsing"""

    @pytest.mark.asyncio
    async def test_parses_headers_and_rows(self, csv_bytes):
        table = await CsvTableParser().parse(csv_bytes, "report.csv")
        assert table.headers == ["Customer Name", "Total Bill", "Total Commission"]
        assert table.rows == [["Acme Corp", "100.00", "25.00"], ["Globex", "200.00", "50.00"]]

    @pytest.mark.asyncio
    async def test_empty_file_has_no_header(self):
        with pytest.raises(MissingHeaderRowError):
            await CsvTableParser().parse(b"", "empty.csv")

    @pytest.mark.asyncio
    async def test_blank_lines_only(self):
        with pytest.raises(MissingHeaderRowError):
            await CsvTableParser().parse(b"\n , \n\n", "blank.csv")

    @pytest.mark.asyncio
    async def test_utf8_bom_stripped(self):
        table = await CsvTableParser().parse(b"\xef\xbb\xbfUsage,Commission\n1,2\n", "bom.csv")
        assert table.headers == ["Usage", "Commission"]

    @pytest.mark.asyncio
    async def test_quoted_fields(self):
        content = b'Customer,Notes\n"Acme, Inc.","said ""hi""\nand left"\n'
        table = await CsvTableParser().parse(content, "quoted.csv")
        assert table.rows == [["Acme, Inc.", 'said "hi"\nand left']]

    @pytest.mark.asyncio
    async def test_blank_rows_skipped_and_short_rows_padded(self):
        content = b"A,B,C\n\n1,2\n,,\n4,5,6\n"
        table = await CsvTableParser().parse(content, "gaps.csv")
        assert table.rows == [["1", "2", ""], ["4", "5", "6"]]

    @pytest.mark.asyncio
    async def test_whitespace_only_line_skipped_and_cells_verbatim(self):
        content = b"Usage,Commission,Notes\n100,25,ok\n\n   \n200,50,  spaced  \n"
        table = await CsvTableParser().parse(content, "spaced.csv")

        assert table.headers == ["Usage", "Commission", "Notes"]
        assert table.rows == [["100", "25", "ok"], ["200", "50", "  spaced  "]]

    @pytest.mark.asyncio
    async def test_header_padding_kept(self):
        table = await CsvTableParser().parse(b"Total Bill ,Total Commission\n1,2\n", "pad.csv")
        assert table.headers[0] == "Total Bill "

    @pytest.mark.asyncio
    async def test_latin1_fallback_when_detection_fails(self, monkeypatch):
        monkeypatch.setattr(
            "infrastructure.parsers.csv_table_parser.chardet.detect",
            lambda file_bytes: {"encoding": None},
        )
        content = "Kunde,Betrag\nMüller,10\n".encode("latin-1")
        table = await CsvTableParser().parse(content, "latin1.csv")
        assert table.rows[0][0] == "Müller"

    def test_supports(self):
        parser = CsvTableParser()
        assert parser.supports("REPORT.CSV") is True
        assert parser.supports("upload", "text/csv") is True
        assert parser.supports("report.xlsx") is False


class TestExcelTableParser:
    """Test Excel parsing"""

    @pytest.mark.asyncio
    async def test_parses_first_sheet(self):
        content = build_xlsx([
            ["Customer Name", "Total Bill", "Total Commission", "Invoice Date"],
            ["Acme Corp", 100, 25.5, datetime(2024, 3, 1)],
            [None, None, None, None],
            ["Globex", 200.0, 50, None],
        ])
        table = await ExcelTableParser().parse(content, "report.xlsx")

        assert table.headers == ["Customer Name", "Total Bill", "Total Commission", "Invoice Date"]
        assert table.rows == [
            ["Acme Corp", "100", "25.5", "2024-03-01"],
            ["Globex", "200", "50", ""],
        ]

    @pytest.mark.asyncio
    async def test_empty_workbook(self):
        with pytest.raises(MissingHeaderRowError):
            await ExcelTableParser().parse(build_xlsx([]), "empty.xlsx")

    @pytest.mark.asyncio
    async def test_corrupt_workbook(self):
        with pytest.raises(DepositFileParseError) as exc_info:
            await ExcelTableParser().parse(b"PK\x03\x04not really a zip", "broken.xlsx")
        assert exc_info.value.code == "excel_unreadable"

    def test_supports(self):
        parser = ExcelTableParser()
        assert parser.supports("report.xlsx") is True
        assert parser.supports("legacy.XLS") is True
        assert parser.supports("report.csv") is False


class TestPdfTableParser:
    """Test PDF table reconstruction"""

    @pytest.mark.asyncio
    async def test_parses_text_pdf(self, usage_commission_pdf):
        table = await PdfTableParser().parse(usage_commission_pdf, "statement.pdf")
        assert table.headers == ["Usage", "Commission"]
        assert table.rows == [["100", "25"], ["200", "50"]]

    @pytest.mark.asyncio
    async def test_multi_word_header_cell(self, text_pdf):
        content = text_pdf([
            ("Account Name", 72, 720),
            ("Usage", 200, 720),
            ("Commission", 300, 720),
            ("Rate", 420, 720),
            ("Acme", 72, 700),
            ("100", 200, 700),
            ("25", 300, 700),
            ("0.25", 420, 700),
        ])
        table = await PdfTableParser().parse(content, "statement.pdf")

        assert table.headers == ["Account Name", "Usage", "Commission", "Rate"]
        assert table.rows == [["Acme", "100", "25", "0.25"]]

    @pytest.mark.asyncio
    async def test_page_without_text(self, text_pdf):
        with pytest.raises(PdfNoTextError):
            await PdfTableParser().parse(text_pdf([]), "scan.pdf")

    @pytest.mark.asyncio
    async def test_password_protected(self, text_pdf):
        content = text_pdf([("Usage", 72, 720), ("Commission", 200, 720)], encrypted=True)
        with pytest.raises(PdfPasswordProtectedError) as exc_info:
            await PdfTableParser().parse(content, "locked.pdf")
        assert exc_info.value.code == "pdf_password_protected"

    @pytest.mark.asyncio
    async def test_malformed_bytes_unreadable(self):
        with pytest.raises(PdfUnreadableError):
            await PdfTableParser().parse(b"this is not a pdf file", "broken.pdf")

    @pytest.mark.asyncio
    async def test_zero_bytes_unreadable(self):
        with pytest.raises(PdfUnreadableError):
            await PdfTableParser().parse(b"", "empty.pdf")

    def test_reconstruct_multi_word_cells(self):
        fragments = [
            TextFragment("Customer", 72, 720, 50),
            TextFragment("Name", 125, 720, 30),
            TextFragment("Total", 300, 720, 30),
            TextFragment("Bill", 333, 720, 20),
            TextFragment("Acme", 72, 700, 30),
            TextFragment("Corp", 105, 700, 25),
            TextFragment("100.00", 300, 700.5, 35),
        ]
        table = PdfTableParser().reconstruct_table([fragments])

        assert table.headers == ["Customer Name", "Total Bill"]
        assert table.rows == [["Acme Corp", "100.00"]]

    def test_repeated_page_header_dropped(self):
        page = [
            TextFragment("Usage", 72, 720, 30),
            TextFragment("Commission", 200, 720, 60),
            TextFragment("100", 72, 700, 20),
            TextFragment("25", 200, 700, 12),
        ]
        table = PdfTableParser().reconstruct_table([page, list(page)])
        assert table.rows == [["100", "25"], ["100", "25"]]

    def test_no_header_line(self):
        with pytest.raises(PdfNoTableError):
            PdfTableParser().reconstruct_table([[TextFragment("Statement", 72, 720, 50)]])

    def test_header_without_rows(self):
        fragments = [TextFragment("Usage", 72, 720, 30), TextFragment("Commission", 200, 720, 60)]
        with pytest.raises(PdfNoTableError):
            PdfTableParser().reconstruct_table([fragments])

    def test_column_boundaries(self):
        assert PdfTableParser.column_boundaries([200, 72]) == [float("-inf"), 136.0]


class TestParserSelection:
    """Test registry selection and the parse entry point"""

    def test_registry_picks_by_extension(self):
        registry = initialize_parsers()
        assert len(registry) == 3
        assert isinstance(registry.get_parser("a.csv"), CsvTableParser)
        assert isinstance(registry.get_parser("a.xlsx"), ExcelTableParser)
        assert isinstance(registry.get_parser("a.pdf"), PdfTableParser)
        assert registry.get_parser("a.docx") is None
        assert registry.get_parser("") is None

    def test_register_none_rejected(self):
        with pytest.raises(ValueError):
            ParserRegistry().register(None)

    @pytest.mark.asyncio
    async def test_parse_deposit_file_csv(self, csv_bytes):
        table = await parse_deposit_file(csv_bytes, "report.csv")
        assert table.headers[0] == "Customer Name"
        assert len(table.rows) == 2

    @pytest.mark.asyncio
    async def test_parse_deposit_file_by_mime_type(self, csv_bytes):
        table = await parse_deposit_file(csv_bytes, "upload", mime_type="text/csv")
        assert len(table.rows) == 2

    @pytest.mark.asyncio
    async def test_unsupported_type(self):
        with pytest.raises(UnsupportedFileTypeError) as exc_info:
            await parse_deposit_file(b"hello", "notes.txt")
        assert exc_info.value.code == "unsupported_file_type"

    @pytest.mark.asyncio
    async def test_too_large(self, csv_bytes, monkeypatch):
        from config import get_settings

        monkeypatch.setenv("MAX_UPLOAD_SIZE_BYTES", "10")
        get_settings.cache_clear()
        with pytest.raises(DepositFileParseError) as exc_info:
            await parse_deposit_file(csv_bytes, "report.csv")
        assert exc_info.value.code == "file_too_large"

    @pytest.mark.asyncio
    async def test_parse_errors_propagate(self):
        with pytest.raises(MissingHeaderRowError):
            await parse_deposit_file(b"", "empty.csv")
