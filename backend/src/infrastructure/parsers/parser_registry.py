"""Parser Registry - Manages available table parsers and selects one per upload.

Parsers are selected by file extension or MIME type and priority.
"""

import logging
from typing import List, Optional

from domain.deposit_import.ports import TableParserPort

logger = logging.getLogger(__name__)


class ParserRegistry:
    """Registry of deposit table parsers.

    Example:
        registry = ParserRegistry()
        registry.register(CsvTableParser())
        registry.register(PdfTableParser())

        parser = registry.get_parser('statement.pdf')
        if parser:
            table = await parser.parse(file_bytes, 'statement.pdf')
    """

    def __init__(self):
        """Initialize empty registry."""
        self._parsers: List[TableParserPort] = []

    def register(self, parser: TableParserPort) -> None:
        """Register a parser.

        Raises:
            ValueError: If parser is None
        """
        if parser is None:
            raise ValueError("Cannot register None as parser")

        self._parsers.append(parser)
        logger.info(f"Registered parser: {parser.version}")

    def get_parser(self, file_name: str, mime_type: Optional[str] = None) -> Optional[TableParserPort]:
        """Get the parser for a file.

        Args:
            file_name: Original file name
            mime_type: Optional MIME type reported by the uploader

        Returns:
            Supporting parser with the lowest priority number, or None
        """
        if not file_name and not mime_type:
            logger.warning("get_parser called without file name or mime_type")
            return None

        compatible_parsers = [
            parser
            for parser in self._parsers
            if parser.supports(file_name, mime_type)
        ]

        if not compatible_parsers:
            logger.warning(f"No parser found for file: {file_name} (mime_type={mime_type})")
            return None

        compatible_parsers.sort(key=lambda p: p.priority)

        selected = compatible_parsers[0]
        logger.debug(
            f"Selected parser {selected.version} for {file_name} "
            f"(priority={selected.priority})"
        )

        return selected

    def list_parsers(self) -> List[TableParserPort]:
        return list(self._parsers)

    def clear(self) -> None:
        """Clear all registered parsers."""
        count = len(self._parsers)
        self._parsers.clear()
        logger.info(f"Cleared {count} parsers from registry")

    def __len__(self) -> int:
        return len(self._parsers)


# Global registry instance (singleton pattern)
_global_registry: Optional[ParserRegistry] = None


def get_global_registry() -> ParserRegistry:
    """Get global parser registry singleton.

    The registry starts empty; parsers are registered at startup through
    registry_init.initialize_parsers().
    """
    global _global_registry

    if _global_registry is None:
        _global_registry = ParserRegistry()
        logger.debug("Initialized global parser registry")

    return _global_registry


def reset_global_registry() -> None:
    """Reset global registry (primarily for testing)."""
    global _global_registry
    _global_registry = None
    logger.debug("Reset global parser registry")
