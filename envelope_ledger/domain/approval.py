"""Transaction approval state machine.

pending --approve--> approved    (balances applied once)
pending --reject---> rejected    (deleted, no balance effect)
approved --reverse--> pending    (prior delta undone first)

These functions only validate transitions and compute deltas; the service
layer applies them inside a single unit of work.
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from envelope_ledger.domain.exceptions import (
    AlreadyProcessedError,
    DuplicateReviewRequiredError,
    MissingEnvelopeError,
)
from envelope_ledger.domain.models import (
    DUPLICATE_POTENTIAL,
    SOURCE_BANK_IMPORT,
    BalanceDelta,
    Transaction,
)


def state_of(txn: Transaction) -> str:
    return "approved" if txn.is_approved else "pending"


def requires_envelope(txn: Transaction) -> bool:
    """Expenses need an envelope; transfers and income may stay unassigned"""
    return not txn.is_transfer and txn.amount < 0


def approval_delta(txn: Transaction) -> BalanceDelta:
    """
    Validate that a pending transaction may be approved and compute its effect.

    The account always moves by the signed amount. The envelope, when
    assigned, moves by the same signed amount: an expense of -20 lowers the
    envelope by 20, income routed to an envelope raises it.
    """
    if txn.is_approved:
        raise AlreadyProcessedError(txn.id, "approved", "approve")
    if txn.source == SOURCE_BANK_IMPORT and txn.duplicate_status == DUPLICATE_POTENTIAL:
        raise DuplicateReviewRequiredError(txn.id, txn.duplicate_of_id)
    if txn.envelope_id is None and requires_envelope(txn):
        raise MissingEnvelopeError(
            f"Transaction {txn.id} ({txn.merchant}, {txn.amount}) needs an envelope before approval"
        )
    return BalanceDelta(
        transaction_id=txn.id,
        account_id=txn.account_id,
        envelope_id=txn.envelope_id,
        amount=txn.amount,
    )


def check_rejectable(txn: Transaction) -> None:
    if txn.is_approved:
        raise AlreadyProcessedError(txn.id, "approved", "reject")


def reversal_delta(txn: Transaction) -> BalanceDelta:
    """Delta that exactly undoes a prior approval"""
    if not txn.is_approved:
        raise AlreadyProcessedError(txn.id, "pending", "reverse")
    return BalanceDelta(
        transaction_id=txn.id,
        account_id=txn.account_id,
        envelope_id=txn.envelope_id,
        amount=-txn.amount,
    )


def reassignment_deltas(txn: Transaction, new_envelope_id: Optional[int]) -> List[Tuple[int, Decimal]]:
    """
    Envelope adjustments needed to move an approved transaction between envelopes.

    Pending transactions carry no applied effect, so nothing moves. The old
    envelope is credited back before the new one is charged.
    """
    if not txn.is_approved or txn.envelope_id == new_envelope_id:
        return []
    if new_envelope_id is None and requires_envelope(txn):
        raise MissingEnvelopeError(f"Approved expense {txn.id} cannot be left without an envelope")

    deltas: List[Tuple[int, Decimal]] = []
    if txn.envelope_id is not None:
        deltas.append((txn.envelope_id, -txn.amount))
    if new_envelope_id is not None:
        deltas.append((new_envelope_id, txn.amount))
    return deltas
