"""/v1/reconciliation - bank vs envelope totals and integrity checks"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import IntegrityResponse, ReconciliationResponse
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.budget import BudgetService

router = APIRouter()


@router.get("/reconciliation", response_model=ReconciliationResponse)
def get_reconciliation(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    """Compare active account balances with active envelope balances"""
    return ReconciliationResponse.model_validate(BudgetService(db, user_id).reconcile())


@router.get("/reconciliation/integrity", response_model=IntegrityResponse)
def verify_integrity(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    """Recompute balances from history; 500 with the drift details on mismatch"""
    BudgetService(db, user_id).verify_integrity()
    return IntegrityResponse(status="consistent")
