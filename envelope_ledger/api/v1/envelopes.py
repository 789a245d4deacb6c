"""/v1/envelopes - envelopes, allocations and transfers"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import (
    AllocateRequest,
    EnvelopeCreate,
    EnvelopeResponse,
    TransferRequest,
    TransferResponse,
)
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.budget import BudgetService

router = APIRouter()


@router.post("/envelopes", response_model=EnvelopeResponse, status_code=201)
def create_envelope(
    body: EnvelopeCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    envelope = BudgetService(db, user_id).create_envelope(
        body.name,
        opening_balance=body.opening_balance,
        budgeted_amount=body.budgeted_amount,
        icon=body.icon,
        category_id=body.category_id,
        is_monitored=body.is_monitored,
    )
    return EnvelopeResponse.model_validate(envelope)


@router.get("/envelopes", response_model=List[EnvelopeResponse])
def list_envelopes(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return [EnvelopeResponse.model_validate(e) for e in BudgetService(db, user_id).list_envelopes()]


# Declared before /envelopes/{envelope_id}/... so "transfer" is never read as an id
@router.post("/envelopes/transfer", response_model=TransferResponse)
def transfer(
    body: TransferRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Move funds from one envelope to another"""
    source, destination = BudgetService(db, user_id).transfer(
        body.from_envelope_id, body.to_envelope_id, body.amount, note=body.note
    )
    return TransferResponse(
        source=EnvelopeResponse.model_validate(source),
        destination=EnvelopeResponse.model_validate(destination),
    )


@router.post("/envelopes/{envelope_id}/allocate", response_model=EnvelopeResponse)
def allocate(
    envelope_id: int,
    body: AllocateRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Assign (positive) or release (negative) unallocated money"""
    envelope = BudgetService(db, user_id).allocate(envelope_id, body.amount, note=body.note)
    return EnvelopeResponse.model_validate(envelope)
