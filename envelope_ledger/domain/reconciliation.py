"""Reconciliation of account balances against envelope balances"""

from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from envelope_ledger.domain.exceptions import InconsistentStateError
from envelope_ledger.domain.models import (
    Account,
    AccountLine,
    Envelope,
    EnvelopeLine,
    ReconciliationReport,
    Transaction,
)
from envelope_ledger.domain.money import ZERO, to_money, total

DEFAULT_TOLERANCE = Decimal("0.01")


def reconcile(
    accounts: Sequence[Account],
    envelopes: Sequence[Envelope],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ReconciliationReport:
    """
    Compare total bank balance with total envelope balance.

    Pure: reports the discrepancy and never corrects it. Credit accounts are
    liabilities and carry their (usually negative) balance into the total.
    """
    total_bank = total(a.balance for a in accounts)
    total_envelopes = total(e.current_balance for e in envelopes)
    difference = total_bank - total_envelopes

    account_lines = [
        AccountLine(
            account_id=a.id,
            name=a.name,
            balance=to_money(a.balance),
            kind="liability" if a.type == "credit" else "asset",
            status="positive" if a.balance >= 0 else "negative",
        )
        for a in accounts
    ]
    envelope_lines = [
        EnvelopeLine(
            envelope_id=e.id,
            name=e.name,
            balance=to_money(e.current_balance),
            status="positive" if e.current_balance >= 0 else "overspent",
        )
        for e in envelopes
    ]

    return ReconciliationReport(
        total_bank_balance=total_bank,
        total_envelope_balance=total_envelopes,
        difference=difference,
        is_reconciled=abs(difference) < tolerance,
        accounts=account_lines,
        envelopes=envelope_lines,
    )


def find_account_drift(accounts: Iterable[Account], transactions: Iterable[Transaction]) -> List[str]:
    """Accounts whose balance disagrees with the sum of their approved transactions"""
    approved: Dict[int, Decimal] = {}
    for txn in transactions:
        if txn.is_approved:
            approved[txn.account_id] = approved.get(txn.account_id, ZERO) + txn.amount

    problems = []
    for account in accounts:
        expected = account.opening_balance + approved.get(account.id, ZERO)
        if expected != account.balance:
            problems.append(
                f"Account {account.id} ({account.name}) balance {account.balance} "
                f"!= opening {account.opening_balance} + approved transactions = {expected}"
            )
    return problems


def find_envelope_drift(envelopes: Iterable[Envelope], journal_totals: Dict[int, Decimal]) -> List[str]:
    """Envelopes whose balance disagrees with their balance journal"""
    problems = []
    for envelope in envelopes:
        expected = envelope.opening_balance + journal_totals.get(envelope.id, ZERO)
        if expected != envelope.current_balance:
            problems.append(
                f"Envelope {envelope.id} ({envelope.name}) balance {envelope.current_balance} "
                f"!= opening {envelope.opening_balance} + journal = {expected}"
            )
    return problems


def assert_consistent(problems: List[str]) -> None:
    if problems:
        raise InconsistentStateError("; ".join(problems))
