"""Recurring income templates and their distribution into envelopes"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from envelope_ledger.domain.distribution import plan_distribution
from envelope_ledger.domain.exceptions import (
    InconsistentStateError,
    InvalidRequestError,
    NotFoundError,
    TemplateNotFoundError,
)
from envelope_ledger.domain.models import (
    FREQUENCIES,
    SOURCE_MANUAL,
    BalanceDelta,
    DistributionResult,
    RecurringSplit,
    RecurringTemplate,
)
from envelope_ledger.domain.money import ZERO, require_positive
from envelope_ledger.infrastructure.database.repositories import (
    AccountRepository,
    EnvelopeRepository,
    RecurringTemplateRepository,
    TransactionRepository,
    template_from_record,
)
from envelope_ledger.infrastructure.database.session import transactional
from envelope_ledger.infrastructure.observability.logging import log_ledger_event
from envelope_ledger.infrastructure.observability.metrics import record_distribution
from envelope_ledger.services.balances import BalanceBook
from envelope_ledger.utils.date_utils import advance_date


class RecurringIncomeService:
    """Creates recurring templates and distributes actual receipts"""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.templates = RecurringTemplateRepository(db)
        self.transactions = TransactionRepository(db)
        self.accounts = AccountRepository(db)
        self.envelopes = EnvelopeRepository(db)
        self.balances = BalanceBook(db, user_id)

    def _require_envelope(self, envelope_id: int) -> None:
        if self.envelopes.get_envelope(self.user_id, envelope_id) is None:
            raise NotFoundError("Envelope", envelope_id)

    def create_template(
        self,
        account_id: int,
        name: str,
        amount: Decimal,
        frequency: str,
        next_date: date,
        splits: Iterable[RecurringSplit],
        merchant: Optional[str] = None,
        surplus_envelope_id: Optional[int] = None,
        end_date: Optional[date] = None,
    ) -> RecurringTemplate:
        """Store a template; split totals may differ from the expected amount"""
        if frequency not in FREQUENCIES:
            raise InvalidRequestError(f"Unknown frequency {frequency!r}")
        amount = require_positive(amount, "expected amount")
        splits = [RecurringSplit(s.envelope_id, require_positive(s.amount, "split amount")) for s in splits]

        with transactional(self.db):
            if self.accounts.get_account(self.user_id, account_id) is None:
                raise NotFoundError("Account", account_id)
            for split in splits:
                self._require_envelope(split.envelope_id)
            if surplus_envelope_id is not None:
                self._require_envelope(surplus_envelope_id)
            record = self.templates.create_template(
                self.user_id,
                account_id,
                name,
                amount,
                frequency,
                next_date,
                splits,
                merchant=merchant,
                surplus_envelope_id=surplus_envelope_id,
                end_date=end_date,
            )
            template = template_from_record(record)

        log_ledger_event(
            "recurring_template_created",
            self.user_id,
            "Recurring template created",
            template_id=template.id,
            split_count=len(template.splits),
        )
        return template

    def process(self, template_id: int, actual_amount: Decimal) -> DistributionResult:
        """
        Distribute an actual receipt according to a template's splits.

        Flow:
        1. Load the template and plan credits + surplus (fixed split amounts)
        2. Create one pre-approved crediting transaction per split
        3. Create one more for the surplus when it is non-zero (may be a debit);
           with no surplus envelope it is posted unassigned
        4. Apply every account/envelope effect in the same unit of work
        5. Advance next_date by the template frequency

        Raises:
            InvalidAmountError: actual_amount <= 0
            TemplateNotFoundError: missing, inactive, or owned by someone else
            NotFoundError: a split envelope no longer exists
        """
        actual = require_positive(actual_amount, "actual amount")

        with transactional(self.db):
            record = self.templates.get_template(self.user_id, template_id)
            if record is None:
                raise TemplateNotFoundError(template_id)
            if not record.is_active:
                raise TemplateNotFoundError(template_id, "is inactive")

            template = template_from_record(record)
            plan = plan_distribution(template, actual)
            for credit in plan.credits:
                self._require_envelope(credit.envelope_id)
            if plan.surplus != ZERO and plan.surplus_envelope_id is not None:
                self._require_envelope(plan.surplus_envelope_id)

            postings = [(c.envelope_id, c.amount, f"{template.name}: allocation") for c in plan.credits]
            if plan.surplus != ZERO:
                postings.append((plan.surplus_envelope_id, plan.surplus, f"{template.name}: surplus"))

            merchant = template.merchant or template.name
            transaction_ids = []
            for envelope_id, amount, description in postings:
                txn = self.transactions.create_transaction(
                    self.user_id,
                    template.account_id,
                    amount,
                    merchant,
                    template.next_date,
                    envelope_id=envelope_id,
                    description=description,
                    source=SOURCE_MANUAL,
                    recurring_template_id=template.id,
                )
                # Confirmed receipt: created and approved in one step
                if not self.transactions.mark_approved(txn):
                    raise InconsistentStateError(f"Distribution transaction {txn.id} was approved concurrently")
                self.balances.apply(
                    BalanceDelta(
                        transaction_id=txn.id,
                        account_id=template.account_id,
                        envelope_id=envelope_id,
                        amount=amount,
                    ),
                    "approval",
                )
                transaction_ids.append(txn.id)

            next_date = advance_date(template.frequency, template.next_date)
            record.next_date = next_date
            if record.end_date is not None and next_date > record.end_date:
                record.is_active = False
            self.db.flush()

        record_distribution(plan.surplus)
        log_ledger_event(
            "recurring_processed",
            self.user_id,
            "Recurring income distributed",
            template_id=template_id,
            actual_amount=actual,
            surplus=plan.surplus,
            transaction_ids=transaction_ids,
            next_date=next_date,
        )
        return DistributionResult(
            template_id=template_id,
            credited_envelopes=plan.credits,
            surplus=plan.surplus,
            transaction_ids=transaction_ids,
            next_date=next_date,
        )
