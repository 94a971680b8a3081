"""Resolve a previously recorded header name against a file's live headers.

Templates remember header names as they appeared in an earlier upload.
The next file from the same vendor may differ in padding, case or
punctuation. Matching gets progressively looser:

1. exact string match (first occurrence)
2. unique match after trimming
3. unique case-insensitive match after trimming
4. unique match after full normalization (normalize_key)

A looser stage only runs when the stricter stage found nothing. If a stage
finds more than one candidate the result is 'ambiguous' and no guess is made.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from observability.metrics import header_resolutions_total

from .normalize import normalize_key

NOT_FOUND = "not_found"
AMBIGUOUS = "ambiguous"


@dataclass
class HeaderResolution:
    """Outcome of resolving one recorded header.

    Attributes:
        ok: True if exactly one live header corresponds to the request
        index: Position of the resolved header (None unless ok)
        header: The live header text (None unless ok)
        reason: 'not_found' or 'ambiguous' when not ok
        matches: Competing live headers when ambiguous
    """

    ok: bool
    index: Optional[int] = None
    header: Optional[str] = None
    reason: Optional[str] = None
    matches: List[str] = field(default_factory=list)

    @classmethod
    def resolved(cls, index: int, header: str) -> "HeaderResolution":
        return cls(ok=True, index=index, header=header)

    @classmethod
    def not_found(cls) -> "HeaderResolution":
        return cls(ok=False, reason=NOT_FOUND)

    @classmethod
    def ambiguous(cls, matches: List[str]) -> "HeaderResolution":
        return cls(ok=False, reason=AMBIGUOUS, matches=list(matches))

    @property
    def is_ambiguous(self) -> bool:
        return self.reason == AMBIGUOUS


def _resolve_unique_match(
    headers: List[str],
    predicate: Callable[[str], bool],
) -> HeaderResolution:
    matches = []
    for index, header in enumerate(headers):
        if predicate(header or ""):
            matches.append((index, header))
            if len(matches) > 1:
                break

    if len(matches) == 1:
        index, header = matches[0]
        return HeaderResolution.resolved(index, header)

    if len(matches) > 1:
        return HeaderResolution.ambiguous([header for _, header in matches])

    return HeaderResolution.not_found()


def _stage_result(result: HeaderResolution) -> Optional[HeaderResolution]:
    """Return a stage result that should stop the search, else None."""
    if result.ok or result.is_ambiguous:
        return result
    return None


def _resolve(headers: List[str], requested_header: str) -> HeaderResolution:
    if not requested_header:
        return HeaderResolution.not_found()

    if requested_header in headers:
        index = headers.index(requested_header)
        return HeaderResolution.resolved(index, headers[index])

    trimmed_requested = requested_header.strip()
    if not trimmed_requested:
        return HeaderResolution.not_found()

    by_trim = _stage_result(
        _resolve_unique_match(headers, lambda header: header.strip() == trimmed_requested)
    )
    if by_trim:
        return by_trim

    lowered_requested = trimmed_requested.lower()
    by_case_insensitive_trim = _stage_result(
        _resolve_unique_match(headers, lambda header: header.strip().lower() == lowered_requested)
    )
    if by_case_insensitive_trim:
        return by_case_insensitive_trim

    normalized_requested = normalize_key(trimmed_requested)
    if not normalized_requested:
        return HeaderResolution.not_found()

    return _resolve_unique_match(headers, lambda header: normalize_key(header) == normalized_requested)


def resolve_spreadsheet_header(headers: List[str], requested_header: str) -> HeaderResolution:
    """
    Find the live header that corresponds to a recorded header name.

    Args:
        headers: Live headers of the uploaded file, in file order
        requested_header: Header name recorded in a template or mapping

    Returns:
        HeaderResolution with index/header when unique, otherwise
        reason 'ambiguous' (with matches) or 'not_found'

    Examples:
        >>> resolve_spreadsheet_header(["Total Bill ($)", "Total Commission"], "Total Bill").header
        'Total Bill ($)'
        >>> resolve_spreadsheet_header([" Total Bill ", "Total Bill", "Other"], "Total Bill ").reason
        'ambiguous'
    """
    result = _resolve(headers, requested_header)
    header_resolutions_total.labels(outcome="resolved" if result.ok else result.reason).inc()
    return result
