"""Duplicate detection between bank imports and manual entries"""

from decimal import Decimal
from typing import Iterable, Optional

from envelope_ledger.domain.matching import normalize_merchant
from envelope_ledger.domain.models import (
    DUPLICATE_MERGED,
    SOURCE_BANK_IMPORT,
    SOURCE_MANUAL,
    DuplicateMatch,
    Transaction,
)

DEFAULT_WINDOW_DAYS = 3
DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")


def merchants_overlap(a: str, b: str) -> bool:
    """Case-insensitive substring containment in either direction"""
    left, right = normalize_merchant(a), normalize_merchant(b)
    if not left or not right:
        return False
    return left in right or right in left


def match_candidate(
    incoming: Transaction,
    candidate: Transaction,
    window_days: int = DEFAULT_WINDOW_DAYS,
    tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
) -> Optional[DuplicateMatch]:
    """Return a match if the candidate looks like the same real-world purchase"""
    if candidate.id == incoming.id or candidate.source != SOURCE_MANUAL:
        return None
    if candidate.bank_verified or candidate.duplicate_status == DUPLICATE_MERGED:
        return None

    amount_gap = abs(incoming.amount - candidate.amount)
    if amount_gap > tolerance:
        return None

    day_gap = abs((incoming.date - candidate.date).days)
    if day_gap > window_days:
        return None

    if not merchants_overlap(incoming.merchant, candidate.merchant):
        return None

    strength = "strong" if amount_gap == 0 else "weak"
    return DuplicateMatch(candidate=candidate, day_gap=day_gap, strength=strength)


def find_duplicate(
    incoming: Transaction,
    candidates: Iterable[Transaction],
    window_days: int = DEFAULT_WINDOW_DAYS,
    tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
) -> Optional[DuplicateMatch]:
    """
    Find the manual transaction most likely duplicated by a bank import.

    Requirements (all must hold):
    - incoming is a bank import, candidate is manual (approved or pending)
    - amounts within tolerance (exact = strong signal, near = weak signal)
    - dates at most window_days apart
    - merchants overlap by substring in either direction

    Several qualifying candidates: closest date wins, ties go to the smallest id.
    """
    if incoming.source != SOURCE_BANK_IMPORT:
        return None

    matches = [
        match
        for match in (match_candidate(incoming, c, window_days, tolerance) for c in candidates)
        if match is not None
    ]
    if not matches:
        return None
    return min(matches, key=lambda m: (m.day_gap, m.candidate.id))
