"""Reference data adapters - read-only lookup tables loaded from disk."""

from .telarus_master import (
    TelarusTemplateMaster,
    TelarusTemplateMatch,
    find_telarus_template_match,
    get_telarus_template_master,
)

__all__ = [
    "TelarusTemplateMaster",
    "TelarusTemplateMatch",
    "find_telarus_template_match",
    "get_telarus_template_master",
]
