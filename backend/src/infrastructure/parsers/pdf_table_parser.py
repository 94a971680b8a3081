"""PDF table parser - geometric table reconstruction from text-based PDFs.

Vendor statements exported to PDF have no table structure in the file,
only positioned text. The table is rebuilt from text run positions:

1. text runs are read per page in content-stream order with their baseline
   y and rendered width; spaces inside a run do not split it
2. runs are grouped into lines (vertical tolerance against the running
   average y of the line)
3. within a line, runs are merged into cells; a horizontal gap wider than
   max(minimum gap, multiplier x median gap) starts a new cell
4. the first line with at least two cells is the header; midpoints between
   its cell start positions are the column boundaries for all other lines

Repeated page headers and blank rows are dropped. Scanned (image-only)
PDFs have no text runs and are rejected; OCR is not attempted.
"""

import asyncio
import io
import logging
import statistics
from dataclasses import dataclass
from typing import List, Optional

import pdfplumber
from pdfminer.pdfdocument import PDFPasswordIncorrect
from pdfminer.psparser import PSException
from pdfplumber.utils.exceptions import PdfminerException

from config import get_settings
from domain.deposit_import.errors import (
    PdfNoTableError,
    PdfNoTextError,
    PdfPasswordProtectedError,
    PdfUnreadableError,
)
from domain.deposit_import.parsed_table import ParsedTable, is_blank_row
from domain.deposit_import.ports import TableParserPort

logger = logging.getLogger(__name__)


@dataclass
class TextFragment:
    """A positioned piece of text (x, y in PDF space, y grows upwards)."""

    text: str
    x: float
    y: float
    width: float

    @property
    def right(self) -> float:
        return self.x + self.width


@dataclass
class TextCell:
    text: str
    x: float


def _is_password_error(error: BaseException) -> bool:
    """True if a pdfminer error (possibly wrapped by pdfplumber) is a password failure."""
    seen = set()
    pending = [error]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, PDFPasswordIncorrect):
            return True
        pending.extend(arg for arg in getattr(current, "args", ()) if isinstance(arg, BaseException))
        pending.append(current.__cause__)
        pending.append(current.__context__)
    return False


class PdfTableParser(TableParserPort):
    """PDF parser for table-style, text-based reports."""

    EXTENSIONS = ('.pdf',)
    MIME_TYPES = ('application/pdf',)

    def __init__(
        self,
        line_y_tolerance: Optional[float] = None,
        min_cell_gap: Optional[float] = None,
        gap_median_multiplier: Optional[float] = None,
        min_gaps_for_median: Optional[int] = None,
    ):
        """Initialize PDF parser.

        Args default to the PDF_* values in Settings.
        """
        settings = get_settings()
        self.line_y_tolerance = settings.PDF_LINE_Y_TOLERANCE if line_y_tolerance is None else line_y_tolerance
        self.min_cell_gap = settings.PDF_MIN_CELL_GAP if min_cell_gap is None else min_cell_gap
        self.gap_median_multiplier = (
            settings.PDF_GAP_MEDIAN_MULTIPLIER if gap_median_multiplier is None else gap_median_multiplier
        )
        self.min_gaps_for_median = (
            settings.PDF_MIN_GAPS_FOR_MEDIAN if min_gaps_for_median is None else min_gaps_for_median
        )

    def supports(self, file_name: str, mime_type: Optional[str] = None) -> bool:
        lowered = (file_name or '').lower()
        return lowered.endswith(self.EXTENSIONS) or mime_type in self.MIME_TYPES

    @property
    def version(self) -> str:
        return "pdf_layout_v1"

    @property
    def priority(self) -> int:
        return 20

    async def parse(self, file_bytes: bytes, file_name: str) -> ParsedTable:
        if not file_bytes:
            raise PdfUnreadableError()

        pages = await asyncio.to_thread(self._read_fragments, file_bytes, file_name)
        if not any(pages):
            logger.warning(f"PDF {file_name} has no extractable text")
            raise PdfNoTextError()

        table = self.reconstruct_table(pages)
        logger.info(
            f"Parsed PDF {file_name}: {len(pages)} pages, "
            f"{len(table.headers)} columns, {len(table.rows)} rows"
        )
        return table

    def _read_fragments(self, file_bytes: bytes, file_name: str) -> List[List[TextFragment]]:
        """Read the text run fragments of every page, in page order."""
        try:
            with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
                pages = []
                for page in pdf.pages:
                    height = float(page.height)
                    pages.append([
                        TextFragment(
                            text=run["text"],
                            x=float(run["x0"]),
                            y=height - float(run["bottom"]),
                            width=float(run["x1"]) - float(run["x0"]),
                        )
                        for run in page.extract_words(keep_blank_chars=True, use_text_flow=True)
                        if run["text"].strip()
                    ])
                return pages
        except (PdfminerException, PSException) as e:
            if _is_password_error(e):
                logger.warning(f"PDF {file_name} is password protected")
                raise PdfPasswordProtectedError() from e
            logger.warning(f"Unable to read PDF {file_name}: {e!r}")
            raise PdfUnreadableError() from e

    def reconstruct_table(self, pages: List[List[TextFragment]]) -> ParsedTable:
        """
        Rebuild a header/row table from positioned fragments.

        Args:
            pages: Fragments per page, in page order

        Returns:
            ParsedTable with the first multi-cell line as headers

        Raises:
            PdfNoTableError: If no header line or no data rows are found
        """
        header_cells: Optional[List[TextCell]] = None
        boundaries: List[float] = []
        rows: List[List[str]] = []

        for fragments in pages:
            for line in self.group_lines(fragments):
                if header_cells is None:
                    cells = self.merge_cells(line)
                    if len(cells) >= 2:
                        header_cells = sorted(cells, key=lambda cell: cell.x)
                        boundaries = self.column_boundaries([cell.x for cell in header_cells])
                    continue
                rows.append(self.assign_columns(line, boundaries))

        if header_cells is None:
            raise PdfNoTableError(
                "Could not find a table header in the PDF. Please export the report as CSV/Excel."
            )

        headers = [cell.text for cell in header_cells]
        data_rows = [row for row in rows if row != headers and not is_blank_row(row)]
        if not data_rows:
            raise PdfNoTableError(
                "The PDF table has a header but no data rows. Please export the report as CSV/Excel."
            )

        return ParsedTable(headers=headers, rows=data_rows)

    def group_lines(self, fragments: List[TextFragment]) -> List[List[TextFragment]]:
        """Group a page's fragments into lines, top to bottom."""
        lines: List[List[TextFragment]] = []
        line_y = 0.0

        for fragment in sorted(fragments, key=lambda f: (-f.y, f.x)):
            if lines and abs(fragment.y - line_y) <= self.line_y_tolerance:
                current = lines[-1]
                current.append(fragment)
                line_y += (fragment.y - line_y) / len(current)
            else:
                lines.append([fragment])
                line_y = fragment.y

        return lines

    def cell_gap_threshold(self, gaps: List[float]) -> float:
        if len(gaps) >= self.min_gaps_for_median:
            return max(self.min_cell_gap, self.gap_median_multiplier * statistics.median(gaps))
        return self.min_cell_gap

    def merge_cells(self, line: List[TextFragment]) -> List[TextCell]:
        """Merge a line's fragments into cells separated by wide gaps."""
        ordered = sorted(line, key=lambda f: f.x)
        if not ordered:
            return []

        gaps = [current.x - previous.right for previous, current in zip(ordered, ordered[1:])]
        threshold = self.cell_gap_threshold(gaps)

        cells = [TextCell(text=ordered[0].text.strip(), x=ordered[0].x)]
        for gap, fragment in zip(gaps, ordered[1:]):
            if gap > threshold:
                cells.append(TextCell(text=fragment.text.strip(), x=fragment.x))
            else:
                cells[-1].text = f"{cells[-1].text} {fragment.text.strip()}".strip()

        return [cell for cell in cells if cell.text]

    @staticmethod
    def column_boundaries(starts: List[float]) -> List[float]:
        """Left boundary of every column; the first column is unbounded."""
        ordered = sorted(starts)
        return [float("-inf")] + [
            (left + right) / 2 for left, right in zip(ordered, ordered[1:])
        ]

    @staticmethod
    def assign_columns(line: List[TextFragment], boundaries: List[float]) -> List[str]:
        """Place each fragment in the last column whose boundary it reaches."""
        columns: List[List[str]] = [[] for _ in boundaries]
        for fragment in sorted(line, key=lambda f: f.x):
            index = 0
            for candidate, boundary in enumerate(boundaries):
                if fragment.x >= boundary:
                    index = candidate
            columns[index].append(fragment.text.strip())
        return [" ".join(part for part in parts if part) for parts in columns]
