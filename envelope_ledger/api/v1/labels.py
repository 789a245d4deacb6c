"""/v1/labels - transaction labels"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import LabelCreate, LabelResponse
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.budget import BudgetService

router = APIRouter()


@router.post("/labels", response_model=LabelResponse, status_code=201)
def create_label(
    body: LabelCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    label = BudgetService(db, user_id).create_label(body.name, body.color)
    return LabelResponse.model_validate(label)


@router.get("/labels", response_model=List[LabelResponse])
def list_labels(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return [LabelResponse.model_validate(label) for label in BudgetService(db, user_id).list_labels()]
