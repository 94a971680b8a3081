"""Deposit file parsing errors.

Every format failure aborts the import; the message names the remedy so it
can be shown to the uploader as-is. The code is stable for API consumers.
"""

from typing import Optional


class DepositFileParseError(ValueError):
    """Raised when an uploaded deposit file cannot be turned into a table."""

    code = "parse_failed"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class UnsupportedFileTypeError(DepositFileParseError):
    code = "unsupported_file_type"

    def __init__(self, message: str = "Unsupported file type. Please upload a CSV, Excel, or PDF file."):
        super().__init__(message)


class MissingHeaderRowError(DepositFileParseError):
    code = "missing_header_row"


class PdfUnreadableError(DepositFileParseError):
    code = "pdf_unreadable"

    def __init__(
        self,
        message: str = "Unable to read PDF file. The file may be empty or corrupted; "
        "please export the report as CSV/Excel.",
    ):
        super().__init__(message)


class PdfPasswordProtectedError(DepositFileParseError):
    code = "pdf_password_protected"

    def __init__(
        self,
        message: str = "PDF file is password protected. Remove the password or export "
        "the report as CSV/Excel.",
    ):
        super().__init__(message)


class PdfNoTextError(DepositFileParseError):
    code = "pdf_no_text"

    def __init__(
        self,
        message: str = "PDF file has no readable text (it may be a scanned image). "
        "Upload a text-based PDF or export the report as CSV/Excel.",
    ):
        super().__init__(message)


class PdfNoTableError(DepositFileParseError):
    code = "pdf_no_table"
