"""Header normalization for column matching.

Raw vendor headers differ in case, punctuation, separators and camel-case
("TotalBill", "total_bill", "Total Bill ($)"). normalize_key() folds them into
a single comparison key.
"""

import re
from typing import Any, List

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')
_SEPARATORS = re.compile(r'[-_./\\\s]+')
_NON_ALNUM = re.compile(r'[^a-z0-9 ]')
_SPACES = re.compile(r' {2,}')


def normalize_key(value: Any) -> str:
    """
    Normalize a header (or synonym, or label) into a comparison key.

    Args:
        value: Raw header string; anything else normalizes to ''

    Returns:
        Lowercase key with single spaces between alphanumeric tokens

    Examples:
        >>> normalize_key("Total Bill ($)")
        'total bill'
        >>> normalize_key("customerIdVendor")
        'customer id vendor'
        >>> normalize_key("Commission_Rate%")
        'commission rate'
    """
    if not isinstance(value, str) or not value:
        return ''

    normalized = _CAMEL_BOUNDARY.sub(' ', value)
    normalized = normalized.lower()
    normalized = _SEPARATORS.sub(' ', normalized)
    normalized = _NON_ALNUM.sub('', normalized)
    normalized = _SPACES.sub(' ', normalized)
    return normalized.strip()


def tokenize(normalized: str) -> List[str]:
    """Split an already-normalized key into tokens."""
    return [token for token in normalized.split(' ') if token]


def header_looks_like_rate(header: str) -> bool:
    """True if a header names a percentage/rate rather than an amount.

    Checks the raw text as well as the normalized key, since normalization
    drops the '%' sign.
    """
    lowered = (header or '').lower()
    if '%' in lowered:
        return True
    normalized = normalize_key(header)
    return 'rate' in normalized or 'percent' in normalized


def header_mentions_rate(header: str) -> bool:
    """True if the normalized header contains 'rate'."""
    return 'rate' in normalize_key(header)
