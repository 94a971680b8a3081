"""Pytest fixtures shared by the deposit import tests.

Provides:
- backend/src on sys.path (domain, infrastructure, observability, config)
- Fresh settings and parser registry per test
- Small deposit report fixtures (CSV bytes, hand-built PDF bytes)
- A temporary reference layout master table

Usage:
    @pytest.mark.asyncio
    async def test_parse(csv_bytes):
        table = await parse_deposit_file(csv_bytes, "report.csv")
"""

import sys
from pathlib import Path

import pytest

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from config import get_settings  # noqa: E402
from infrastructure.parsers.parser_registry import reset_global_registry  # noqa: E402
from infrastructure.reference_data.telarus_master import get_telarus_template_master  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings_and_registry():
    """Reload settings and drop cached singletons around every test."""
    get_settings.cache_clear()
    get_telarus_template_master.cache_clear()
    reset_global_registry()
    yield
    get_settings.cache_clear()
    get_telarus_template_master.cache_clear()
    reset_global_registry()


def build_text_pdf(lines, encrypted: bool = False) -> bytes:
    """Build a minimal single-page PDF with Helvetica text.

    Args:
        lines: Iterable of (text, x, y) tuples in PDF coordinates
        encrypted: Add a standard security handler whose keys match no
            password, so opening the file fails authentication

    Returns:
        PDF file bytes with a valid xref table
    """
    content = "\n".join(
        f"BT /F1 12 Tf {x} {y} Td ({text}) Tj ET" for text, x, y in lines
    ).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(content)).encode() + b" >>\nstream\n" + content + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    if encrypted:
        objects.append(
            b"<< /Filter /Standard /V 1 /R 2 /P -4 "
            b"/O <" + b"00" * 32 + b"> /U <" + b"11" * 32 + b"> >>"
        )

    pdf = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(pdf))
        pdf += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(pdf)
    pdf += f"xref\n0 {len(objects) + 1}\n".encode()
    pdf += b"0000000000 65535 f \n"
    for offset in offsets:
        pdf += f"{offset:010d} 00000 n \n".encode()
    trailer = f"/Size {len(objects) + 1} /Root 1 0 R"
    if encrypted:
        trailer += f" /Encrypt {len(objects)} 0 R /ID [<{'01' * 16}> <{'01' * 16}>]"
    pdf += f"trailer\n<< {trailer} >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    return bytes(pdf)


@pytest.fixture
def usage_commission_pdf() -> bytes:
    """Two-column PDF statement: Usage / Commission with two data rows."""
    return build_text_pdf([
        ("Usage", 72, 720),
        ("Commission", 200, 720),
        ("100", 72, 700),
        ("25", 200, 700),
        ("200", 72, 680),
        ("50", 200, 680),
    ])


@pytest.fixture
def csv_bytes() -> bytes:
    return (
        b"Customer Name,Total Bill,Total Commission\n"
        b"Acme Corp,100.00,25.00\n"
        b"Globex,200.00,50.00\n"
    )


@pytest.fixture
def master_csv_path(tmp_path):
    """Write a master table and return its path.

    Call with the template-block rows to use; the common block is always
    the Telarus default one.
    """

    def _write(template_rows):
        lines = [
            "Telarus Vendor Map Fields - Master,,,,,,,",
            "Template Map Name,Origin,Company Name,Template ID,Commission Type,Field ID,"
            "Telarus CommonFields,Commissable Field Label",
            "ALL,Telarus,ALL,ALL,ALL,1,Customer Name,Account Legal Name",
            "ALL,Telarus,ALL,ALL,ALL,2,Supplier Name,Vendor Name",
            ",,,,,,,",
            "Template Map Name,Origin,Company Name,Template ID,Commission Type,Field ID,"
            "Telarus fieldName,Commissable Field Label",
            *template_rows,
        ]
        path = tmp_path / "master.csv"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def text_pdf():
    """Factory for single-page text PDFs, see build_text_pdf."""
    return build_text_pdf
