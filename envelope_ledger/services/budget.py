"""Accounts, envelopes, allocations, labels and reconciliation"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from envelope_ledger.config import settings
from envelope_ledger.domain.exceptions import InvalidRequestError, NotFoundError
from envelope_ledger.domain.models import (
    ACCOUNT_TYPES,
    Account,
    Envelope,
    ReconciliationReport,
)
from envelope_ledger.domain.money import ZERO, require_non_zero, require_positive, to_money
from envelope_ledger.domain.reconciliation import (
    assert_consistent,
    find_account_drift,
    find_envelope_drift,
    reconcile,
)
from envelope_ledger.infrastructure.database.models import LabelRecord
from envelope_ledger.infrastructure.database.repositories import (
    AccountRepository,
    BalanceJournal,
    EnvelopeRepository,
    LabelRepository,
    TransactionRepository,
    account_from_record,
    envelope_from_record,
    transaction_from_record,
)
from envelope_ledger.infrastructure.database.session import transactional
from envelope_ledger.infrastructure.observability.logging import log_ledger_event
from envelope_ledger.infrastructure.observability.metrics import record_reconciliation
from envelope_ledger.services.balances import BalanceBook


class BudgetService:
    """Reference data and explicit envelope movements for one user"""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.accounts = AccountRepository(db)
        self.envelopes = EnvelopeRepository(db)
        self.transactions = TransactionRepository(db)
        self.labels = LabelRepository(db)
        self.journal = BalanceJournal(db)
        self.balances = BalanceBook(db, user_id)

    def _get_envelope(self, envelope_id: int) -> Envelope:
        record = self.envelopes.get_envelope(self.user_id, envelope_id)
        if record is None:
            raise NotFoundError("Envelope", envelope_id)
        return envelope_from_record(record)

    # Accounts and envelopes

    def create_account(self, name: str, type: str, opening_balance: Decimal = ZERO) -> Account:
        if type not in ACCOUNT_TYPES:
            raise InvalidRequestError(f"Unknown account type {type!r}")
        with transactional(self.db):
            account = account_from_record(
                self.accounts.create_account(self.user_id, name, type, to_money(opening_balance))
            )
        log_ledger_event("account_created", self.user_id, "Account created", account_id=account.id)
        return account

    def get_account(self, account_id: int) -> Account:
        record = self.accounts.get_account(self.user_id, account_id)
        if record is None:
            raise NotFoundError("Account", account_id)
        return account_from_record(record)

    def list_accounts(self) -> List[Account]:
        return [account_from_record(r) for r in self.accounts.get_accounts(self.user_id)]

    def create_envelope(
        self,
        name: str,
        opening_balance: Decimal = ZERO,
        budgeted_amount: Decimal = ZERO,
        icon: str = "📁",
        category_id: Optional[int] = None,
        is_monitored: bool = False,
    ) -> Envelope:
        with transactional(self.db):
            envelope = envelope_from_record(
                self.envelopes.create_envelope(
                    self.user_id,
                    name,
                    to_money(opening_balance),
                    to_money(budgeted_amount),
                    icon=icon,
                    category_id=category_id,
                    is_monitored=is_monitored,
                )
            )
        log_ledger_event("envelope_created", self.user_id, "Envelope created", envelope_id=envelope.id)
        return envelope

    def list_envelopes(self) -> List[Envelope]:
        return [envelope_from_record(r) for r in self.envelopes.get_envelopes(self.user_id)]

    def get_envelope(self, envelope_id: int) -> Envelope:
        return self._get_envelope(envelope_id)

    # Explicit envelope movements

    def allocate(self, envelope_id: int, amount: Decimal, note: Optional[str] = None) -> Envelope:
        """Add (or, when negative, release) unallocated money to an envelope"""
        amount = require_non_zero(amount, "allocation")
        with transactional(self.db):
            self._get_envelope(envelope_id)
            self.balances.adjust_envelope(envelope_id, amount, "allocation", note=note)
            envelope = self._get_envelope(envelope_id)
        log_ledger_event(
            "envelope_allocated", self.user_id, "Envelope allocation", envelope_id=envelope_id, amount=amount
        )
        return envelope

    def transfer(self, from_envelope_id: int, to_envelope_id: int, amount: Decimal, note: Optional[str] = None):
        """Move funds between two envelopes; returns (source, destination)"""
        amount = require_positive(amount, "transfer amount")
        if from_envelope_id == to_envelope_id:
            raise InvalidRequestError("Cannot transfer an envelope into itself")
        with transactional(self.db):
            source = self._get_envelope(from_envelope_id)
            destination = self._get_envelope(to_envelope_id)
            note = note or f"{source.name} → {destination.name}"
            self.balances.adjust_envelope(from_envelope_id, -amount, "transfer", note=note)
            self.balances.adjust_envelope(to_envelope_id, amount, "transfer", note=note)
            result = (self._get_envelope(from_envelope_id), self._get_envelope(to_envelope_id))
        log_ledger_event(
            "envelope_transfer",
            self.user_id,
            "Envelope transfer",
            from_envelope_id=from_envelope_id,
            to_envelope_id=to_envelope_id,
            amount=amount,
        )
        return result

    # Labels

    def create_label(self, name: str, color: str = "#3B82F6") -> LabelRecord:
        with transactional(self.db):
            label = self.labels.create_label(self.user_id, name, color)
        return label

    def list_labels(self) -> List[LabelRecord]:
        return self.labels.get_labels(self.user_id)

    # Reconciliation

    def reconcile(self) -> ReconciliationReport:
        """Reconcile active accounts against active envelopes; read-only"""
        accounts = [account_from_record(r) for r in self.accounts.get_accounts(self.user_id, active_only=True)]
        envelopes = [envelope_from_record(r) for r in self.envelopes.get_envelopes(self.user_id, active_only=True)]
        report = reconcile(accounts, envelopes, tolerance=settings.reconciliation_tolerance)
        record_reconciliation(report.difference)
        return report

    def verify_integrity(self) -> None:
        """
        Check stored balances against their history.

        Raises:
            InconsistentStateError: an account disagrees with its approved
                transactions, or an envelope with its balance journal
        """
        accounts = [account_from_record(r) for r in self.accounts.get_accounts(self.user_id)]
        envelopes = [envelope_from_record(r) for r in self.envelopes.get_envelopes(self.user_id)]
        transactions = [transaction_from_record(r) for r in self.transactions.get_transactions(self.user_id)]
        problems = find_account_drift(accounts, transactions)
        problems += find_envelope_drift(envelopes, self.journal.envelope_totals(self.user_id))
        assert_consistent(problems)
