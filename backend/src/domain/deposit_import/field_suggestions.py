"""Ranked field suggestions for a raw column header.

Used when auto-mapping found nothing for a header: the UI offers the best
few canonical fields to the user. Scores are in [0, 1]:

- 1.0   normalized header equals a candidate
- 0.92  one token set is a subset of the other
- 0.86  one normalized string contains the other
- else  0.55 * candidate coverage + 0.45 * Jaccard similarity

Amount fields are dampened for rate-like headers so "Commission Rate"
never suggests "Commission Amount" (and likewise for usage).
"""

from typing import Iterable, List, Optional, Set

from pydantic import BaseModel

from config import get_settings

from .field_catalog import (
    LEGACY_FIELD_ID_TO_TARGET_ID,
    TARGET_ID_TO_LEGACY_FIELD_ID,
    FieldTarget,
)
from .fields import AUTO_FIELD_SYNONYMS, DEPOSIT_FIELD_DEFINITIONS
from .normalize import header_looks_like_rate, header_mentions_rate, normalize_key, tokenize

COMMISSION_RATE_DAMPENER = 0.25
USAGE_RATE_DAMPENER = 0.3


class FieldSuggestion(BaseModel):
    """A candidate field for a header, with its match score."""

    field_id: Optional[str] = None
    target_id: Optional[str] = None
    label: str
    score: float


def score_normalized(header_normalized: str, candidate_normalized: str) -> float:
    """Similarity of two normalized keys (0.0 - 1.0)."""
    if not header_normalized or not candidate_normalized:
        return 0.0
    if header_normalized == candidate_normalized:
        return 1.0

    header_tokens = set(tokenize(header_normalized))
    candidate_tokens = set(tokenize(candidate_normalized))
    if not header_tokens or not candidate_tokens:
        return 0.0

    if candidate_tokens <= header_tokens or header_tokens <= candidate_tokens:
        return 0.92

    if candidate_normalized in header_normalized or header_normalized in candidate_normalized:
        return 0.86

    intersection = len(candidate_tokens & header_tokens)
    if intersection == 0:
        return 0.0

    union = len(header_tokens) + len(candidate_tokens) - intersection
    jaccard = intersection / union if union else 0.0
    coverage = intersection / len(candidate_tokens)
    return 0.55 * coverage + 0.45 * jaccard


def _best_candidate_score(header_normalized: str, candidates: Iterable[str]) -> float:
    best = 0.0
    seen: Set[str] = set()
    for candidate in candidates:
        candidate_normalized = normalize_key(candidate)
        if not candidate_normalized or candidate_normalized in seen:
            continue
        seen.add(candidate_normalized)
        best = max(best, score_normalized(header_normalized, candidate_normalized))
    return best


def _dampen(legacy_field_id: Optional[str], header: str, score: float) -> float:
    if legacy_field_id == "commission" and header_looks_like_rate(header):
        return score * COMMISSION_RATE_DAMPENER
    if legacy_field_id == "usage" and header_mentions_rate(header):
        return score * USAGE_RATE_DAMPENER
    return score


def _rank(suggestions: List[FieldSuggestion], limit: int) -> List[FieldSuggestion]:
    suggestions.sort(key=lambda suggestion: (-suggestion.score, suggestion.label.casefold(), suggestion.label))
    return suggestions[:limit]


def suggest_deposit_field_matches(
    header: str,
    limit: Optional[int] = None,
    min_score: Optional[float] = None,
) -> List[FieldSuggestion]:
    """
    Suggest legacy line fields for a raw header.

    Args:
        header: Raw header text from the uploaded file
        limit: Maximum suggestions (default Settings.SUGGESTION_LIMIT)
        min_score: Discard suggestions below this score
            (default Settings.SUGGESTION_MIN_SCORE)

    Returns:
        Suggestions sorted by descending score, ties by label

    Examples:
        >>> suggest_deposit_field_matches("Customer Id")[0].field_id
        'customerIdVendor'
        >>> suggest_deposit_field_matches("Commission Rate (%)")[0].field_id
        'commissionRate'
    """
    settings = get_settings()
    limit = settings.SUGGESTION_LIMIT if limit is None else limit
    min_score = settings.SUGGESTION_MIN_SCORE if min_score is None else min_score

    header_normalized = normalize_key(header)
    if not header_normalized:
        return []

    suggestions = []
    for field in DEPOSIT_FIELD_DEFINITIONS:
        candidates = [field.label, field.id, *AUTO_FIELD_SYNONYMS.get(field.id, [])]
        score = _dampen(field.id, header, _best_candidate_score(header_normalized, candidates))
        if score >= min_score:
            suggestions.append(
                FieldSuggestion(
                    field_id=field.id,
                    target_id=LEGACY_FIELD_ID_TO_TARGET_ID.get(field.id),
                    label=field.label,
                    score=score,
                )
            )

    return _rank(suggestions, limit)


def suggest_target_matches(
    header: str,
    catalog: Iterable[FieldTarget],
    limit: Optional[int] = None,
    min_score: Optional[float] = None,
) -> List[FieldSuggestion]:
    """
    Suggest catalog targets for a raw header.

    Same scoring as suggest_deposit_field_matches(), but over an arbitrary
    catalog. Targets with a legacy counterpart also match on its synonyms.
    """
    settings = get_settings()
    limit = settings.SUGGESTION_LIMIT if limit is None else limit
    min_score = settings.SUGGESTION_MIN_SCORE if min_score is None else min_score

    header_normalized = normalize_key(header)
    if not header_normalized:
        return []

    suggestions = []
    for target in catalog:
        legacy_field_id = TARGET_ID_TO_LEGACY_FIELD_ID.get(target.id)
        candidates = [target.label, target.id.split(".", 1)[-1]]
        if legacy_field_id:
            candidates.extend(AUTO_FIELD_SYNONYMS.get(legacy_field_id, []))

        score = _dampen(legacy_field_id, header, _best_candidate_score(header_normalized, candidates))
        if score >= min_score:
            suggestions.append(
                FieldSuggestion(
                    field_id=legacy_field_id,
                    target_id=target.id,
                    label=target.label,
                    score=score,
                )
            )

    return _rank(suggestions, limit)
