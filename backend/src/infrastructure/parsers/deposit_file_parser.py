"""Entry point for turning an uploaded deposit file into a ParsedTable."""

import logging
import time
from typing import Optional

from config import get_settings
from domain.deposit_import.errors import DepositFileParseError, UnsupportedFileTypeError
from domain.deposit_import.parsed_table import ParsedTable
from observability.import_context import generate_import_id, import_id_var, set_import_id
from observability.metrics import (
    deposit_files_parsed_total,
    deposit_parse_duration_seconds,
    deposit_rows_parsed,
)

from .parser_registry import ParserRegistry
from .registry_init import get_initialized_registry

logger = logging.getLogger(__name__)


async def parse_deposit_file(
    file_bytes: bytes,
    file_name: str,
    mime_type: Optional[str] = None,
    registry: Optional[ParserRegistry] = None,
) -> ParsedTable:
    """
    Parse an uploaded deposit file.

    Args:
        file_bytes: Raw file content
        file_name: Original file name (extension selects the format)
        mime_type: Optional MIME type reported by the uploader
        registry: Parser registry (defaults to the initialized global one)

    Returns:
        ParsedTable with headers and aligned data rows

    Raises:
        UnsupportedFileTypeError: If no parser handles the file
        DepositFileParseError: If the file cannot be parsed; nothing partial
            is returned
    """
    if import_id_var.get() is None:
        set_import_id(generate_import_id())

    registry = registry or get_initialized_registry()
    parser = registry.get_parser(file_name, mime_type)
    if parser is None:
        deposit_files_parsed_total.labels(file_format="unknown", status="error").inc()
        logger.warning(
            f"Rejected deposit file {file_name}: unsupported type",
            extra={"file_name": file_name, "error_code": UnsupportedFileTypeError.code},
        )
        raise UnsupportedFileTypeError()

    file_format = parser.file_format
    max_size = get_settings().MAX_UPLOAD_SIZE_BYTES
    if len(file_bytes) > max_size:
        deposit_files_parsed_total.labels(file_format=file_format, status="error").inc()
        raise DepositFileParseError(
            f"File is too large ({len(file_bytes)} bytes, limit {max_size} bytes)",
            code="file_too_large",
        )

    start_time = time.perf_counter()
    try:
        table = await parser.parse(file_bytes, file_name)
    except DepositFileParseError as e:
        deposit_files_parsed_total.labels(file_format=file_format, status="error").inc()
        logger.warning(
            f"Deposit file {file_name} could not be parsed: {e.message}",
            extra={"file_name": file_name, "file_format": file_format, "error_code": e.code},
        )
        raise

    runtime = time.perf_counter() - start_time
    deposit_files_parsed_total.labels(file_format=file_format, status="success").inc()
    deposit_parse_duration_seconds.labels(file_format=file_format).observe(runtime)
    deposit_rows_parsed.labels(file_format=file_format).observe(len(table.rows))

    logger.info(
        f"Parsed deposit file {file_name} with {parser.version}: "
        f"{len(table.headers)} columns, {len(table.rows)} rows, runtime={int(runtime * 1000)}ms",
        extra={
            "file_name": file_name,
            "file_format": file_format,
            "parser_version": parser.version,
            "row_count": len(table.rows),
        },
    )
    return table
