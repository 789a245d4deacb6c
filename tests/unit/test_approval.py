"""Unit tests for the approval state machine transitions"""

import pytest
from datetime import date
from decimal import Decimal
from envelope_ledger.domain.approval import (
    approval_delta,
    check_rejectable,
    reassignment_deltas,
    reversal_delta,
)
from envelope_ledger.domain.exceptions import (
    AlreadyProcessedError,
    DuplicateReviewRequiredError,
    MissingEnvelopeError,
)
from envelope_ledger.domain.models import DUPLICATE_POTENTIAL, SOURCE_BANK_IMPORT, Transaction


def make_txn(**kwargs) -> Transaction:
    fields = dict(id=1, account_id=10, amount=Decimal("-20.00"), merchant="Cafe", date=date(2024, 5, 1), envelope_id=3)
    fields.update(kwargs)
    return Transaction(**fields)


def test_expense_delta_lowers_account_and_envelope():
    delta = approval_delta(make_txn())
    assert delta.account_id == 10
    assert delta.envelope_id == 3
    assert delta.amount == Decimal("-20.00")


def test_income_without_envelope_is_allowed():
    delta = approval_delta(make_txn(amount=Decimal("500.00"), envelope_id=None))
    assert delta.envelope_id is None
    assert delta.amount == Decimal("500.00")


def test_transfer_without_envelope_is_allowed():
    delta = approval_delta(make_txn(is_transfer=True, envelope_id=None))
    assert delta.envelope_id is None


def test_expense_without_envelope_rejected():
    with pytest.raises(MissingEnvelopeError):
        approval_delta(make_txn(envelope_id=None))


def test_already_approved():
    with pytest.raises(AlreadyProcessedError) as exc:
        approval_delta(make_txn(is_approved=True))
    assert exc.value.state == "approved"


def test_flagged_bank_import_needs_review_first():
    txn = make_txn(source=SOURCE_BANK_IMPORT, duplicate_status=DUPLICATE_POTENTIAL, duplicate_of_id=7)
    with pytest.raises(DuplicateReviewRequiredError) as exc:
        approval_delta(txn)
    assert exc.value.duplicate_of_id == 7


def test_approved_cannot_be_rejected():
    with pytest.raises(AlreadyProcessedError):
        check_rejectable(make_txn(is_approved=True))
    check_rejectable(make_txn())


def test_reversal_negates_approval():
    txn = make_txn(is_approved=True)
    assert reversal_delta(txn).amount == -approval_delta(make_txn()).amount

    with pytest.raises(AlreadyProcessedError):
        reversal_delta(make_txn())


def test_reassignment_moves_between_envelopes():
    txn = make_txn(is_approved=True)
    assert reassignment_deltas(txn, 4) == [(3, Decimal("20.00")), (4, Decimal("-20.00"))]


def test_reassignment_of_pending_or_same_envelope_moves_nothing():
    assert reassignment_deltas(make_txn(), 4) == []
    assert reassignment_deltas(make_txn(is_approved=True), 3) == []


def test_approved_expense_cannot_lose_its_envelope():
    with pytest.raises(MissingEnvelopeError):
        reassignment_deltas(make_txn(is_approved=True), None)
