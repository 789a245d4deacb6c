"""/v1/accounts - bank accounts"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import AccountCreate, AccountResponse
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.budget import BudgetService

router = APIRouter()


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(
    body: AccountCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Open an account; its balance starts at the opening balance"""
    account = BudgetService(db, user_id).create_account(body.name, body.type, body.opening_balance)
    return AccountResponse.model_validate(account)


@router.get("/accounts", response_model=List[AccountResponse])
def list_accounts(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return [AccountResponse.model_validate(a) for a in BudgetService(db, user_id).list_accounts()]
