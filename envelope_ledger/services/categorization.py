"""Category rules and merchant memory"""

from typing import List, Optional

from sqlalchemy.orm import Session

from envelope_ledger.domain.exceptions import InvalidRequestError, NotFoundError
from envelope_ledger.domain.matching import normalize_merchant, suggest_envelope, suggest_from_memory
from envelope_ledger.domain.models import CategoryRule
from envelope_ledger.infrastructure.database.repositories import (
    CategoryRuleRepository,
    EnvelopeRepository,
    rule_from_record,
)
from envelope_ledger.infrastructure.database.session import transactional
from envelope_ledger.infrastructure.observability.logging import log_ledger_event


class Categorizer:
    """Suggests envelopes for merchants from rules, then from merchant memory"""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.rules = CategoryRuleRepository(db)
        self.envelopes = EnvelopeRepository(db)

    def create_rule(self, pattern: str, envelope_id: int) -> CategoryRule:
        pattern = pattern.strip()
        if not pattern:
            raise InvalidRequestError("Rule pattern must not be blank")
        with transactional(self.db):
            if self.envelopes.get_envelope(self.user_id, envelope_id) is None:
                raise NotFoundError("Envelope", envelope_id)
            record = self.rules.create_rule(self.user_id, pattern, envelope_id)
            rule = rule_from_record(record)
        log_ledger_event("rule_created", self.user_id, "Category rule created", rule_id=rule.id, pattern=pattern)
        return rule

    def list_rules(self) -> List[CategoryRule]:
        return [rule_from_record(r) for r in self.rules.get_rules(self.user_id)]

    def suggest(self, merchant: str) -> Optional[int]:
        """Rule match first (lowest id wins), merchant memory as fallback"""
        envelope_id = suggest_envelope(merchant, self.list_rules())
        if envelope_id is not None:
            return envelope_id
        memories = self.rules.get_merchant_memory(self.user_id, normalize_merchant(merchant))
        return suggest_from_memory(merchant, memories)

    def remember(self, merchant: str, envelope_id: int) -> None:
        """Called inside the approving unit of work"""
        key = normalize_merchant(merchant)
        if key:
            self.rules.remember_merchant(self.user_id, key, envelope_id)
