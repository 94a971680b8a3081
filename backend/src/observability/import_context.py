"""Import ID management for log correlation.

Every deposit upload gets an import ID that is attached to all log records
emitted while it is parsed and mapped, across awaits.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for import_id (async-safe)
import_id_var: ContextVar[Optional[str]] = ContextVar("import_id", default=None)


def generate_import_id() -> str:
    """Generate a new unique import ID.

    Returns:
        str: UUID v4 import ID
    """
    return str(uuid.uuid4())


def get_import_id() -> str:
    """Get current import ID from context.

    Returns:
        str: Current import ID or "no-import-id" if not set
    """
    return import_id_var.get() or "no-import-id"


def set_import_id(import_id: str) -> None:
    """Set import ID in current context.

    Args:
        import_id: Import ID to set
    """
    import_id_var.set(import_id)
