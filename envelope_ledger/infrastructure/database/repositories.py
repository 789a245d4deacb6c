"""Data access layer for ledger entities.

Every lookup is scoped to the owning user. Balance changes and state
transitions are issued as single conditional UPDATE/DELETE statements so
that concurrent requests are serialized by the database.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from envelope_ledger.domain.models import (
    Account,
    CategoryRule,
    DUPLICATE_NONE,
    DUPLICATE_POTENTIAL,
    Envelope,
    MerchantMemory,
    RecurringSplit,
    RecurringTemplate,
    SOURCE_MANUAL,
    Transaction,
)
from envelope_ledger.domain.money import from_cents, to_cents
from envelope_ledger.infrastructure.database.models import (
    AccountRecord,
    BalanceEntryRecord,
    CategoryRuleRecord,
    DismissedBankRecord,
    EnvelopeRecord,
    LabelRecord,
    MerchantMemoryRecord,
    RecurringSplitRecord,
    RecurringTemplateRecord,
    TransactionRecord,
)


def account_from_record(record: AccountRecord) -> Account:
    return Account(
        id=record.id,
        name=record.name,
        type=record.type,
        balance=from_cents(record.balance_cents),
        opening_balance=from_cents(record.opening_balance_cents),
        is_active=record.is_active,
    )


def envelope_from_record(record: EnvelopeRecord) -> Envelope:
    return Envelope(
        id=record.id,
        name=record.name,
        icon=record.icon,
        category_id=record.category_id,
        budgeted_amount=from_cents(record.budgeted_cents),
        current_balance=from_cents(record.current_balance_cents),
        opening_balance=from_cents(record.opening_balance_cents),
        is_active=record.is_active,
        is_monitored=record.is_monitored,
    )


def transaction_from_record(record: TransactionRecord) -> Transaction:
    return Transaction(
        id=record.id,
        account_id=record.account_id,
        envelope_id=record.envelope_id,
        amount=from_cents(record.amount_cents),
        merchant=record.merchant,
        description=record.description,
        date=record.date,
        is_approved=record.is_approved,
        is_transfer=record.is_transfer,
        source=record.source,
        bank_transaction_id=record.bank_transaction_id,
        bank_verified=record.bank_verified,
        duplicate_status=record.duplicate_status,
        duplicate_of_id=record.duplicate_of_id,
        recurring_template_id=record.recurring_template_id,
    )


def rule_from_record(record: CategoryRuleRecord) -> CategoryRule:
    return CategoryRule(
        id=record.id,
        pattern=record.pattern,
        envelope_id=record.envelope_id,
        is_active=record.is_active,
    )


def template_from_record(record: RecurringTemplateRecord) -> RecurringTemplate:
    return RecurringTemplate(
        id=record.id,
        name=record.name,
        account_id=record.account_id,
        amount=from_cents(record.amount_cents),
        frequency=record.frequency,
        next_date=record.next_date,
        splits=[
            RecurringSplit(envelope_id=s.envelope_id, amount=from_cents(s.amount_cents))
            for s in record.splits
        ],
        merchant=record.merchant,
        surplus_envelope_id=record.surplus_envelope_id,
        end_date=record.end_date,
        is_active=record.is_active,
    )


class _Repository:
    def __init__(self, db: Session):
        self.db = db

    def _expire_cached(self, model, pk: int) -> None:
        """Drop stale attribute state after a bulk UPDATE on one row"""
        cached = self.db.identity_map.get(self.db.identity_key(model, pk))
        if cached is not None:
            self.db.expire(cached)


class AccountRepository(_Repository):
    """Repository for accounts"""

    def create_account(self, user_id: int, name: str, type: str, opening_balance: Decimal) -> AccountRecord:
        opening = to_cents(opening_balance)
        record = AccountRecord(
            user_id=user_id,
            name=name,
            type=type,
            balance_cents=opening,
            opening_balance_cents=opening,
            is_active=True,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_account(self, user_id: int, account_id: int) -> Optional[AccountRecord]:
        return (
            self.db.query(AccountRecord)
            .filter(AccountRecord.id == account_id, AccountRecord.user_id == user_id)
            .first()
        )

    def get_accounts(self, user_id: int, active_only: bool = False) -> List[AccountRecord]:
        query = self.db.query(AccountRecord).filter(AccountRecord.user_id == user_id)
        if active_only:
            query = query.filter(AccountRecord.is_active.is_(True))
        return query.order_by(AccountRecord.id).all()

    def adjust_balance(self, user_id: int, account_id: int, delta_cents: int) -> None:
        """Atomic SQL-side increment of an account balance"""
        self.db.flush()
        self.db.execute(
            update(AccountRecord)
            .where(AccountRecord.id == account_id, AccountRecord.user_id == user_id)
            .values(balance_cents=AccountRecord.balance_cents + delta_cents)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(AccountRecord, account_id)


class EnvelopeRepository(_Repository):
    """Repository for envelopes"""

    def create_envelope(
        self,
        user_id: int,
        name: str,
        opening_balance: Decimal,
        budgeted_amount: Decimal,
        icon: str = "📁",
        category_id: Optional[int] = None,
        is_monitored: bool = False,
    ) -> EnvelopeRecord:
        opening = to_cents(opening_balance)
        record = EnvelopeRecord(
            user_id=user_id,
            name=name,
            icon=icon,
            category_id=category_id,
            budgeted_cents=to_cents(budgeted_amount),
            current_balance_cents=opening,
            opening_balance_cents=opening,
            is_active=True,
            is_monitored=is_monitored,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_envelope(self, user_id: int, envelope_id: int) -> Optional[EnvelopeRecord]:
        return (
            self.db.query(EnvelopeRecord)
            .filter(EnvelopeRecord.id == envelope_id, EnvelopeRecord.user_id == user_id)
            .first()
        )

    def get_envelopes(self, user_id: int, active_only: bool = False) -> List[EnvelopeRecord]:
        query = self.db.query(EnvelopeRecord).filter(EnvelopeRecord.user_id == user_id)
        if active_only:
            query = query.filter(EnvelopeRecord.is_active.is_(True))
        return query.order_by(EnvelopeRecord.id).all()

    def adjust_balance(self, user_id: int, envelope_id: int, delta_cents: int) -> None:
        """Atomic SQL-side increment of an envelope balance"""
        self.db.flush()
        self.db.execute(
            update(EnvelopeRecord)
            .where(EnvelopeRecord.id == envelope_id, EnvelopeRecord.user_id == user_id)
            .values(current_balance_cents=EnvelopeRecord.current_balance_cents + delta_cents)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(EnvelopeRecord, envelope_id)


class TransactionRepository(_Repository):
    """Repository for transactions and their approval state"""

    def create_transaction(
        self,
        user_id: int,
        account_id: int,
        amount: Decimal,
        merchant: str,
        txn_date: date,
        envelope_id: Optional[int] = None,
        description: Optional[str] = None,
        is_transfer: bool = False,
        source: str = SOURCE_MANUAL,
        bank_transaction_id: Optional[str] = None,
        recurring_template_id: Optional[int] = None,
    ) -> TransactionRecord:
        """Persist a new transaction in the pending state"""
        record = TransactionRecord(
            user_id=user_id,
            account_id=account_id,
            envelope_id=envelope_id,
            amount_cents=to_cents(amount),
            merchant=merchant,
            description=description,
            date=txn_date,
            is_approved=False,
            is_transfer=is_transfer,
            source=source,
            bank_transaction_id=bank_transaction_id,
            bank_verified=False,
            duplicate_status=DUPLICATE_NONE,
            recurring_template_id=recurring_template_id,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_transaction(self, user_id: int, transaction_id: int) -> Optional[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.id == transaction_id, TransactionRecord.user_id == user_id)
            .first()
        )

    def get_transactions(self, user_id: int) -> List[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.user_id == user_id)
            .order_by(TransactionRecord.date, TransactionRecord.id)
            .all()
        )

    def get_pending(self, user_id: int) -> List[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.user_id == user_id, TransactionRecord.is_approved.is_(False))
            .order_by(TransactionRecord.date, TransactionRecord.id)
            .all()
        )

    def get_manual_candidates(self, user_id: int, account_id: int) -> List[TransactionRecord]:
        """Manual transactions on an account that a bank import may duplicate"""
        return (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.user_id == user_id,
                TransactionRecord.account_id == account_id,
                TransactionRecord.source == SOURCE_MANUAL,
            )
            .order_by(TransactionRecord.id)
            .all()
        )

    def get_flagged_duplicates(self, user_id: int) -> List[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.user_id == user_id,
                TransactionRecord.duplicate_status == DUPLICATE_POTENTIAL,
                TransactionRecord.duplicate_of_id.isnot(None),
            )
            .order_by(TransactionRecord.id)
            .all()
        )

    def find_by_bank_id(self, user_id: int, account_id: int, bank_transaction_id: str) -> Optional[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.user_id == user_id,
                TransactionRecord.account_id == account_id,
                TransactionRecord.bank_transaction_id == bank_transaction_id,
            )
            .first()
        )

    def mark_approved(self, record: TransactionRecord) -> bool:
        """Compare-and-set pending → approved; False when another request got there first"""
        self.db.flush()
        result = self.db.execute(
            update(TransactionRecord)
            .where(TransactionRecord.id == record.id, TransactionRecord.is_approved.is_(False))
            .values(is_approved=True)
            .execution_options(synchronize_session=False)
        )
        self.db.expire(record)
        return result.rowcount == 1

    def mark_pending(self, record: TransactionRecord) -> bool:
        """Compare-and-set approved → pending"""
        self.db.flush()
        result = self.db.execute(
            update(TransactionRecord)
            .where(TransactionRecord.id == record.id, TransactionRecord.is_approved.is_(True))
            .values(is_approved=False)
            .execution_options(synchronize_session=False)
        )
        self.db.expire(record)
        return result.rowcount == 1

    def delete_if_pending(self, record: TransactionRecord) -> bool:
        """Delete a transaction only while it is still pending"""
        record.labels = []
        self.db.flush()
        result = self.db.execute(
            delete(TransactionRecord)
            .where(TransactionRecord.id == record.id, TransactionRecord.is_approved.is_(False))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            self.db.expunge(record)
            return True
        self.db.expire(record)
        return False

    def clear_duplicate_flags(self, duplicate_of_id: int) -> None:
        """Unflag bank imports that pointed at a transaction about to disappear"""
        self.db.flush()
        self.db.execute(
            update(TransactionRecord)
            .where(TransactionRecord.duplicate_of_id == duplicate_of_id)
            .values(duplicate_status=DUPLICATE_NONE, duplicate_of_id=None)
            .execution_options(synchronize_session="fetch")
        )

    def dismiss_bank_id(self, user_id: int, account_id: int, bank_transaction_id: str) -> None:
        """Remember a discarded bank record so re-syncs skip it"""
        if self.is_dismissed(user_id, account_id, bank_transaction_id):
            return
        self.db.add(
            DismissedBankRecord(user_id=user_id, account_id=account_id, bank_transaction_id=bank_transaction_id)
        )
        self.db.flush()

    def is_dismissed(self, user_id: int, account_id: int, bank_transaction_id: str) -> bool:
        return (
            self.db.query(DismissedBankRecord.id)
            .filter(
                DismissedBankRecord.user_id == user_id,
                DismissedBankRecord.account_id == account_id,
                DismissedBankRecord.bank_transaction_id == bank_transaction_id,
            )
            .first()
            is not None
        )


class CategoryRuleRepository(_Repository):
    """Repository for category rules and merchant memory"""

    def create_rule(self, user_id: int, pattern: str, envelope_id: int) -> CategoryRuleRecord:
        record = CategoryRuleRecord(user_id=user_id, pattern=pattern, envelope_id=envelope_id, is_active=True)
        self.db.add(record)
        self.db.flush()
        return record

    def get_rules(self, user_id: int) -> List[CategoryRuleRecord]:
        return (
            self.db.query(CategoryRuleRecord)
            .filter(CategoryRuleRecord.user_id == user_id)
            .order_by(CategoryRuleRecord.id)
            .all()
        )

    def get_merchant_memory(self, user_id: int, merchant: str) -> List[MerchantMemory]:
        records = (
            self.db.query(MerchantMemoryRecord)
            .filter(MerchantMemoryRecord.user_id == user_id, MerchantMemoryRecord.merchant == merchant)
            .all()
        )
        return [
            MerchantMemory(
                merchant=r.merchant,
                last_envelope_id=r.last_envelope_id,
                frequency=r.frequency,
                last_used=r.last_used,
            )
            for r in records
        ]

    def remember_merchant(self, user_id: int, merchant: str, envelope_id: int) -> None:
        """Record the envelope chosen for a merchant, bumping its usage count"""
        now = datetime.now(timezone.utc)
        record = (
            self.db.query(MerchantMemoryRecord)
            .filter(MerchantMemoryRecord.user_id == user_id, MerchantMemoryRecord.merchant == merchant)
            .first()
        )
        if record is None:
            self.db.add(
                MerchantMemoryRecord(
                    user_id=user_id,
                    merchant=merchant,
                    last_envelope_id=envelope_id,
                    frequency=1,
                    last_used=now,
                )
            )
        else:
            record.last_envelope_id = envelope_id
            record.frequency += 1
            record.last_used = now
        self.db.flush()


class RecurringTemplateRepository(_Repository):
    """Repository for recurring templates and their splits"""

    def create_template(
        self,
        user_id: int,
        account_id: int,
        name: str,
        amount: Decimal,
        frequency: str,
        next_date: date,
        splits: Iterable[RecurringSplit],
        merchant: Optional[str] = None,
        surplus_envelope_id: Optional[int] = None,
        end_date: Optional[date] = None,
    ) -> RecurringTemplateRecord:
        record = RecurringTemplateRecord(
            user_id=user_id,
            account_id=account_id,
            name=name,
            merchant=merchant,
            amount_cents=to_cents(amount),
            frequency=frequency,
            next_date=next_date,
            end_date=end_date,
            surplus_envelope_id=surplus_envelope_id,
            is_active=True,
        )
        record.splits = [
            RecurringSplitRecord(position=i, envelope_id=s.envelope_id, amount_cents=to_cents(s.amount))
            for i, s in enumerate(splits)
        ]
        self.db.add(record)
        self.db.flush()
        return record

    def get_template(self, user_id: int, template_id: int) -> Optional[RecurringTemplateRecord]:
        return (
            self.db.query(RecurringTemplateRecord)
            .filter(RecurringTemplateRecord.id == template_id, RecurringTemplateRecord.user_id == user_id)
            .first()
        )


class LabelRepository(_Repository):
    """Repository for labels"""

    def create_label(self, user_id: int, name: str, color: str) -> LabelRecord:
        record = LabelRecord(user_id=user_id, name=name, color=color)
        self.db.add(record)
        self.db.flush()
        return record

    def get_labels(self, user_id: int, label_ids: Optional[Iterable[int]] = None) -> List[LabelRecord]:
        query = self.db.query(LabelRecord).filter(LabelRecord.user_id == user_id)
        if label_ids is not None:
            query = query.filter(LabelRecord.id.in_(list(label_ids)))
        return query.order_by(LabelRecord.id).all()


class BalanceJournal(_Repository):
    """Append-only record of balance mutations"""

    def record(
        self,
        user_id: int,
        amount: Decimal,
        kind: str,
        account_id: Optional[int] = None,
        envelope_id: Optional[int] = None,
        transaction_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> BalanceEntryRecord:
        entry = BalanceEntryRecord(
            user_id=user_id,
            account_id=account_id,
            envelope_id=envelope_id,
            transaction_id=transaction_id,
            amount_cents=to_cents(amount),
            kind=kind,
            note=note,
        )
        self.db.add(entry)
        return entry

    def envelope_totals(self, user_id: int) -> Dict[int, Decimal]:
        self.db.flush()
        rows = self.db.execute(
            select(BalanceEntryRecord.envelope_id, func.sum(BalanceEntryRecord.amount_cents))
            .where(BalanceEntryRecord.user_id == user_id, BalanceEntryRecord.envelope_id.isnot(None))
            .group_by(BalanceEntryRecord.envelope_id)
        ).all()
        return {envelope_id: from_cents(int(cents or 0)) for envelope_id, cents in rows}

    def entries_for_transaction(self, user_id: int, transaction_id: int) -> List[BalanceEntryRecord]:
        return (
            self.db.query(BalanceEntryRecord)
            .filter(BalanceEntryRecord.user_id == user_id, BalanceEntryRecord.transaction_id == transaction_id)
            .order_by(BalanceEntryRecord.id)
            .all()
        )
