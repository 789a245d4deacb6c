"""Transaction lifecycle: creation, import, approval, rejection, reversal, duplicates.

Each public method is one unit of work: it either commits every change it
makes or rolls all of them back before the error reaches the caller.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from envelope_ledger.config import settings
from envelope_ledger.domain.approval import (
    approval_delta,
    check_rejectable,
    reassignment_deltas,
    reversal_delta,
    state_of,
)
from envelope_ledger.domain.duplicates import find_duplicate
from envelope_ledger.domain.exceptions import (
    AlreadyProcessedError,
    InvalidRequestError,
    NotFoundError,
)
from envelope_ledger.domain.models import (
    ACTION_DELETE_BANK,
    ACTION_KEEP_BOTH,
    ACTION_MERGE,
    DUPLICATE_MERGED,
    DUPLICATE_POTENTIAL,
    DUPLICATE_REVIEWED,
    SOURCE_BANK_IMPORT,
    SOURCE_MANUAL,
    BankRecord,
    ImportOutcome,
    ResolutionResult,
    Transaction,
)
from envelope_ledger.domain.money import ZERO, parse_money, require_non_zero
from envelope_ledger.infrastructure.database.models import TransactionRecord
from envelope_ledger.infrastructure.database.repositories import (
    AccountRepository,
    EnvelopeRepository,
    LabelRepository,
    TransactionRepository,
    transaction_from_record,
)
from envelope_ledger.infrastructure.database.session import transactional
from envelope_ledger.infrastructure.observability.logging import log_ledger_event
from envelope_ledger.infrastructure.observability.metrics import (
    approval_counter,
    duplicate_flag_counter,
    duplicate_resolution_counter,
    import_counter,
    rejection_counter,
    reversal_counter,
)
from envelope_ledger.services.balances import BalanceBook
from envelope_ledger.services.categorization import Categorizer

KEEP_BOTH_WARNING = (
    "Both transactions were kept; approving both will count the same purchase twice"
)


class TransactionService:
    """Approval state machine and duplicate handling for one user"""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.transactions = TransactionRepository(db)
        self.accounts = AccountRepository(db)
        self.envelopes = EnvelopeRepository(db)
        self.labels = LabelRepository(db)
        self.balances = BalanceBook(db, user_id)
        self.categorizer = Categorizer(db, user_id)

    # Lookups

    def _get(self, transaction_id: int) -> TransactionRecord:
        record = self.transactions.get_transaction(self.user_id, transaction_id)
        if record is None:
            raise NotFoundError("Transaction", transaction_id)
        return record

    def _require_account(self, account_id: int) -> None:
        if self.accounts.get_account(self.user_id, account_id) is None:
            raise NotFoundError("Account", account_id)

    def _require_envelope(self, envelope_id: Optional[int]) -> None:
        if envelope_id is not None and self.envelopes.get_envelope(self.user_id, envelope_id) is None:
            raise NotFoundError("Envelope", envelope_id)

    def _set_labels(self, record: TransactionRecord, label_ids: Iterable[int]) -> None:
        wanted = sorted(set(label_ids))
        labels = self.labels.get_labels(self.user_id, wanted)
        missing = set(wanted) - {label.id for label in labels}
        if missing:
            raise NotFoundError("Label", sorted(missing)[0])
        record.labels = labels

    def get_transaction(self, transaction_id: int) -> Transaction:
        return transaction_from_record(self._get(transaction_id))

    def list_pending(self) -> List[Transaction]:
        return [transaction_from_record(r) for r in self.transactions.get_pending(self.user_id)]

    # Approval state machine

    def _approve_record(self, record: TransactionRecord) -> Transaction:
        """Apply a pending transaction's effect exactly once (caller owns the unit of work)"""
        txn = transaction_from_record(record)
        delta = approval_delta(txn)
        if not self.transactions.mark_approved(record):
            raise AlreadyProcessedError(txn.id, "approved", "approve")
        self.balances.apply(delta, "approval")
        if txn.envelope_id is not None:
            self.categorizer.remember(txn.merchant, txn.envelope_id)
        txn.is_approved = True
        return txn

    def create_manual(
        self,
        account_id: int,
        amount: Decimal,
        merchant: str,
        txn_date: date,
        envelope_id: Optional[int] = None,
        description: Optional[str] = None,
        is_transfer: bool = False,
        approved: bool = False,
        label_ids: Optional[Iterable[int]] = None,
    ) -> Transaction:
        """
        Record a manually entered transaction.

        Pending by default; approved=True applies it in the same unit of work.
        A missing envelope is filled from the category rules when one matches.
        """
        amount = require_non_zero(amount)
        with transactional(self.db):
            self._require_account(account_id)
            self._require_envelope(envelope_id)
            if envelope_id is None and not is_transfer:
                envelope_id = self.categorizer.suggest(merchant)
            record = self.transactions.create_transaction(
                self.user_id,
                account_id,
                amount,
                merchant,
                txn_date,
                envelope_id=envelope_id,
                description=description,
                is_transfer=is_transfer,
                source=SOURCE_MANUAL,
            )
            if label_ids:
                self._set_labels(record, label_ids)
            if approved:
                txn = self._approve_record(record)
                approval_counter.labels(source=SOURCE_MANUAL).inc()
            else:
                txn = transaction_from_record(record)

        log_ledger_event(
            "transaction_created",
            self.user_id,
            "Manual transaction recorded",
            transaction_id=txn.id,
            amount=txn.amount,
            approved=approved,
        )
        return txn

    def approve(
        self,
        transaction_id: int,
        envelope_id: Optional[int] = None,
        description: Optional[str] = None,
        label_ids: Optional[Iterable[int]] = None,
    ) -> Transaction:
        """
        Approve a pending transaction and apply its balance effect.

        Raises:
            NotFoundError: transaction (or override envelope/label) not owned by caller
            AlreadyProcessedError: already approved, including a lost race
            MissingEnvelopeError: expense without an envelope
            DuplicateReviewRequiredError: bank import still flagged as a duplicate
        """
        with transactional(self.db):
            record = self._get(transaction_id)
            if record.is_approved:
                raise AlreadyProcessedError(transaction_id, "approved", "approve")
            if envelope_id is not None:
                self._require_envelope(envelope_id)
                record.envelope_id = envelope_id
            if description is not None:
                record.description = description
            if label_ids is not None:
                self._set_labels(record, label_ids)
            txn = self._approve_record(record)

        approval_counter.labels(source=txn.source).inc()
        log_ledger_event(
            "transaction_approved",
            self.user_id,
            "Transaction approved",
            transaction_id=txn.id,
            account_id=txn.account_id,
            envelope_id=txn.envelope_id,
            amount=txn.amount,
        )
        return txn

    def reject(self, transaction_id: int) -> None:
        """Delete a pending transaction; nothing was ever applied so no balance moves"""
        with transactional(self.db):
            record = self._get(transaction_id)
            txn = transaction_from_record(record)
            check_rejectable(txn)
            self.transactions.clear_duplicate_flags(transaction_id)
            if txn.source == SOURCE_BANK_IMPORT and txn.bank_transaction_id:
                self.transactions.dismiss_bank_id(self.user_id, txn.account_id, txn.bank_transaction_id)
            if not self.transactions.delete_if_pending(record):
                raise AlreadyProcessedError(transaction_id, "approved", "reject")

        rejection_counter.inc()
        log_ledger_event("transaction_rejected", self.user_id, "Transaction rejected", transaction_id=transaction_id)

    def reverse(self, transaction_id: int) -> Transaction:
        """Return an approved transaction to pending, undoing its balance effect first"""
        with transactional(self.db):
            record = self._get(transaction_id)
            txn = transaction_from_record(record)
            delta = reversal_delta(txn)
            if not self.transactions.mark_pending(record):
                raise AlreadyProcessedError(transaction_id, "pending", "reverse")
            self.balances.apply(delta, "reversal")
            txn.is_approved = False

        reversal_counter.inc()
        log_ledger_event(
            "transaction_reversed",
            self.user_id,
            "Transaction reversed to pending",
            transaction_id=txn.id,
            amount=txn.amount,
        )
        return txn

    def reassign(self, transaction_id: int, envelope_id: Optional[int]) -> Transaction:
        """
        Move a transaction to another envelope.

        Pending: only the assignment changes. Approved: the old envelope gets
        its delta back and the new envelope takes it, account untouched.
        """
        with transactional(self.db):
            record = self._get(transaction_id)
            self._require_envelope(envelope_id)
            txn = transaction_from_record(record)
            for target_id, amount in reassignment_deltas(txn, envelope_id):
                kind = "reversal" if target_id == txn.envelope_id else "approval"
                self.balances.adjust_envelope(
                    target_id, amount, kind, transaction_id=txn.id, note="envelope reassignment"
                )
            record.envelope_id = envelope_id
            self.db.flush()
            txn = transaction_from_record(record)

        log_ledger_event(
            "transaction_reassigned",
            self.user_id,
            "Transaction envelope reassigned",
            transaction_id=txn.id,
            envelope_id=envelope_id,
            state=state_of(txn),
        )
        return txn

    # Bank import and duplicates

    def _import_one(self, account_id: int, bank_record: BankRecord) -> ImportOutcome:
        merchant = bank_record.merchant
        bank_id = bank_record.bank_transaction_id
        if bank_id:
            existing = self.transactions.find_by_bank_id(self.user_id, account_id, bank_id)
            if existing is not None:
                return ImportOutcome(action="skipped", transaction_id=existing.id)
            if self.transactions.is_dismissed(self.user_id, account_id, bank_id):
                return ImportOutcome(action="skipped", transaction_id=None)

        amount = parse_money(bank_record.amount)
        if amount == ZERO:
            # Authorisation holds and fee reversals can arrive as 0.00; nothing to record
            return ImportOutcome(action="skipped", transaction_id=None)

        record = self.transactions.create_transaction(
            self.user_id,
            account_id,
            amount,
            merchant,
            bank_record.date,
            description=bank_record.description,
            source=SOURCE_BANK_IMPORT,
            bank_transaction_id=bank_record.bank_transaction_id,
        )
        incoming = transaction_from_record(record)
        candidates = [
            transaction_from_record(c)
            for c in self.transactions.get_manual_candidates(self.user_id, account_id)
        ]
        match = find_duplicate(
            incoming,
            candidates,
            window_days=settings.duplicate_window_days,
            tolerance=settings.duplicate_amount_tolerance,
        )
        if match is not None:
            record.duplicate_status = DUPLICATE_POTENTIAL
            record.duplicate_of_id = match.candidate.id
            duplicate_flag_counter.labels(strength=match.strength).inc()
            return ImportOutcome(
                action="flagged",
                transaction_id=record.id,
                duplicate_of_id=match.candidate.id,
            )

        suggested = self.categorizer.suggest(merchant)
        record.envelope_id = suggested
        return ImportOutcome(action="created", transaction_id=record.id, suggested_envelope_id=suggested)

    def import_bank_transactions(self, account_id: int, records: Iterable[BankRecord]) -> List[ImportOutcome]:
        """
        Import normalized bank records as pending transactions.

        Records already imported (same bank_transaction_id on the account) are
        skipped. Each new record is screened against the account's manual
        transactions; likely duplicates are flagged for review instead of
        receiving an envelope suggestion. The batch is one unit of work.
        """
        with transactional(self.db):
            self._require_account(account_id)
            outcomes = [self._import_one(account_id, r) for r in records]
            self.db.flush()

        for outcome in outcomes:
            import_counter.labels(outcome=outcome.action).inc()
        log_ledger_event(
            "bank_import",
            self.user_id,
            "Bank records imported",
            account_id=account_id,
            created_count=sum(1 for o in outcomes if o.action == "created"),
            flagged_count=sum(1 for o in outcomes if o.action == "flagged"),
            skipped_count=sum(1 for o in outcomes if o.action == "skipped"),
        )
        return outcomes

    def list_duplicates(self) -> List[Tuple[Transaction, Transaction]]:
        """Flagged bank imports paired with the manual transaction they resemble"""
        pairs = []
        for record in self.transactions.get_flagged_duplicates(self.user_id):
            manual = self.transactions.get_transaction(self.user_id, record.duplicate_of_id)
            if manual is not None:
                pairs.append((transaction_from_record(record), transaction_from_record(manual)))
        return pairs

    def resolve_duplicate(self, bank_transaction_id: int, action: str) -> ResolutionResult:
        """
        Resolve a flagged bank import against its manual counterpart.

        merge:       manual keeps its id, becomes bank-verified, bank record is
                     deleted. A pending manual is approved with the bank's
                     amount and date; an approved one is left untouched.
        keep_both:   both stay, both marked reviewed; approving both double-counts.
        delete_bank: bank record is discarded, manual unaffected.
        """
        if action not in (ACTION_MERGE, ACTION_KEEP_BOTH, ACTION_DELETE_BANK):
            raise InvalidRequestError(f"Unknown duplicate resolution {action!r}")

        with transactional(self.db):
            bank = self._get(bank_transaction_id)
            if bank.is_approved or bank.duplicate_status != DUPLICATE_POTENTIAL or bank.duplicate_of_id is None:
                raise AlreadyProcessedError(bank_transaction_id, "resolved", "resolve duplicate")
            manual = self._get(bank.duplicate_of_id)
            result = self._apply_resolution(bank, manual, action)

        duplicate_resolution_counter.labels(action=action).inc()
        log_ledger_event(
            "duplicate_resolved",
            self.user_id,
            "Duplicate resolved",
            action=action,
            bank_transaction_id=bank_transaction_id,
            kept_transaction_ids=result.kept_transaction_ids,
        )
        return result

    def _apply_resolution(self, bank: TransactionRecord, manual: TransactionRecord, action: str) -> ResolutionResult:
        bank_id, manual_id = bank.id, manual.id

        if action == ACTION_KEEP_BOTH:
            bank.duplicate_status = DUPLICATE_REVIEWED
            manual.duplicate_status = DUPLICATE_REVIEWED
            self.db.flush()
            return ResolutionResult(
                action=action,
                kept_transaction_ids=[manual_id, bank_id],
                deleted_transaction_ids=[],
                warning=KEEP_BOTH_WARNING,
            )

        if action == ACTION_MERGE:
            if manual.bank_verified:
                raise AlreadyProcessedError(manual_id, "bank-verified", "merge into")
            manual.bank_verified = True
            manual.bank_transaction_id = bank.bank_transaction_id
            manual.duplicate_status = DUPLICATE_MERGED
            if not manual.is_approved:
                # Bank-confirmed figures are authoritative for a still-pending entry
                manual.amount_cents = bank.amount_cents
                manual.date = bank.date
                if manual.envelope_id is None:
                    manual.envelope_id = bank.envelope_id or self.categorizer.suggest(manual.merchant)

        if action == ACTION_DELETE_BANK and bank.bank_transaction_id:
            self.transactions.dismiss_bank_id(self.user_id, bank.account_id, bank.bank_transaction_id)
        if not self.transactions.delete_if_pending(bank):
            raise AlreadyProcessedError(bank_id, "approved", "discard")

        if action == ACTION_MERGE and not manual.is_approved:
            self._approve_record(manual)

        return ResolutionResult(
            action=action,
            kept_transaction_ids=[manual_id],
            deleted_transaction_ids=[bank_id],
        )
