"""/v1/transactions - manual entry, bank import and the approval state machine"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import (
    ApproveRequest,
    ImportOutcomeSchema,
    ImportRequest,
    ImportResponse,
    ReassignRequest,
    TransactionCreate,
    TransactionResponse,
)
from envelope_ledger.domain.models import BankRecord, ImportOutcome
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.transactions import TransactionService

router = APIRouter()


def import_response(outcomes: List[ImportOutcome]) -> dict:
    """Counts per outcome plus the per-record detail"""
    return dict(
        created=sum(1 for o in outcomes if o.action == "created"),
        flagged=sum(1 for o in outcomes if o.action == "flagged"),
        skipped=sum(1 for o in outcomes if o.action == "skipped"),
        outcomes=[ImportOutcomeSchema.model_validate(o) for o in outcomes],
    )


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    body: TransactionCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Record a manual transaction.

    Left pending unless approved=true; without an envelope the category
    rules and merchant memory supply a suggestion.
    """
    txn = TransactionService(db, user_id).create_manual(
        body.account_id,
        body.amount,
        body.merchant,
        body.date,
        envelope_id=body.envelope_id,
        description=body.description,
        is_transfer=body.is_transfer,
        approved=body.approved,
        label_ids=body.label_ids,
    )
    return TransactionResponse.model_validate(txn)


@router.get("/transactions/pending", response_model=List[TransactionResponse])
def list_pending(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return [TransactionResponse.model_validate(t) for t in TransactionService(db, user_id).list_pending()]


@router.post("/transactions/import", response_model=ImportResponse)
def import_transactions(
    body: ImportRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Import normalized bank records as pending transactions, screening for duplicates"""
    records = [
        BankRecord(
            date=r.date,
            amount=r.amount,
            merchant=r.merchant,
            bank_transaction_id=r.bank_transaction_id,
            description=r.description,
        )
        for r in body.records
    ]
    outcomes = TransactionService(db, user_id).import_bank_transactions(body.account_id, records)
    return ImportResponse(**import_response(outcomes))


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return TransactionResponse.model_validate(TransactionService(db, user_id).get_transaction(transaction_id))


@router.post("/transactions/{transaction_id}/approve", response_model=TransactionResponse)
def approve_transaction(
    transaction_id: int,
    body: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Approve a pending transaction, applying its amount to the account and envelope.

    Returns 409 when it is already approved or still flagged as a duplicate,
    and 422 when an expense has no envelope.
    """
    body = body or ApproveRequest()
    txn = TransactionService(db, user_id).approve(
        transaction_id,
        envelope_id=body.envelope_id,
        description=body.description,
        label_ids=body.label_ids,
    )
    return TransactionResponse.model_validate(txn)


@router.post("/transactions/{transaction_id}/reject", status_code=204)
def reject_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Delete a pending transaction; balances are untouched"""
    TransactionService(db, user_id).reject(transaction_id)


@router.post("/transactions/{transaction_id}/reverse", response_model=TransactionResponse)
def reverse_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Undo an approved transaction's balance effect and return it to pending"""
    return TransactionResponse.model_validate(TransactionService(db, user_id).reverse(transaction_id))


@router.post("/transactions/{transaction_id}/reassign", response_model=TransactionResponse)
def reassign_transaction(
    transaction_id: int,
    body: ReassignRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    txn = TransactionService(db, user_id).reassign(transaction_id, body.envelope_id)
    return TransactionResponse.model_validate(txn)
