"""Balance application - the only code path that mutates stored balances"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from envelope_ledger.domain.models import BalanceDelta
from envelope_ledger.domain.money import ZERO, to_cents
from envelope_ledger.infrastructure.database.repositories import (
    AccountRepository,
    BalanceJournal,
    EnvelopeRepository,
)


class BalanceBook:
    """Applies balance deltas and journals each one against its cause"""

    def __init__(self, db: Session, user_id: int):
        self.user_id = user_id
        self.accounts = AccountRepository(db)
        self.envelopes = EnvelopeRepository(db)
        self.journal = BalanceJournal(db)

    def apply(self, delta: BalanceDelta, kind: str) -> None:
        """Move the account, and the envelope when assigned, by delta.amount"""
        if delta.amount == ZERO:
            return
        self.accounts.adjust_balance(self.user_id, delta.account_id, to_cents(delta.amount))
        self.journal.record(
            self.user_id,
            delta.amount,
            kind,
            account_id=delta.account_id,
            transaction_id=delta.transaction_id,
        )
        if delta.envelope_id is not None:
            self.adjust_envelope(delta.envelope_id, delta.amount, kind, transaction_id=delta.transaction_id)

    def adjust_envelope(
        self,
        envelope_id: int,
        amount: Decimal,
        kind: str,
        transaction_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> None:
        if amount == ZERO:
            return
        self.envelopes.adjust_balance(self.user_id, envelope_id, to_cents(amount))
        self.journal.record(
            self.user_id,
            amount,
            kind,
            envelope_id=envelope_id,
            transaction_id=transaction_id,
            note=note,
        )
