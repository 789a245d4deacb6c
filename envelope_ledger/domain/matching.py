"""Category rule matching - suggests an envelope for a merchant"""

from typing import Iterable, Optional

from envelope_ledger.domain.models import CategoryRule, MerchantMemory


def normalize_merchant(merchant: str) -> str:
    """Lower-case and collapse whitespace so comparisons ignore formatting"""
    return " ".join((merchant or "").split()).lower()


def rule_matches(rule: CategoryRule, merchant: str) -> bool:
    pattern = normalize_merchant(rule.pattern)
    if not rule.is_active or not pattern:
        return False
    return pattern in normalize_merchant(merchant)


def suggest_envelope(merchant: str, rules: Iterable[CategoryRule]) -> Optional[int]:
    """
    Suggest an envelope for a merchant from stored pattern rules.

    Matching is case-insensitive substring containment of the rule pattern in
    the merchant. When several active rules match, the first-created rule
    (lowest id) wins, regardless of the order the rules are passed in.
    """
    matches = [rule for rule in rules if rule_matches(rule, merchant)]
    if not matches:
        return None
    return min(matches, key=lambda r: r.id).envelope_id


def suggest_from_memory(merchant: str, memories: Iterable[MerchantMemory]) -> Optional[int]:
    """Fallback suggestion: the envelope last approved for this exact merchant"""
    key = normalize_merchant(merchant)
    known = [m for m in memories if m.merchant == key]
    if not known:
        return None
    return max(known, key=lambda m: m.last_used).last_envelope_id
