"""Port interfaces for deposit import.

Infrastructure parsers implement these; the domain never imports them.
"""

from .table_parser_port import TableParserPort

__all__ = ["TableParserPort"]
