"""/v1/rules - category rules and envelope suggestions"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import RuleCreate, RuleResponse, SuggestionResponse
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.categorization import Categorizer

router = APIRouter()


@router.post("/rules", response_model=RuleResponse, status_code=201)
def create_rule(
    body: RuleCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    rule = Categorizer(db, user_id).create_rule(body.pattern, body.envelope_id)
    return RuleResponse.model_validate(rule)


@router.get("/rules", response_model=List[RuleResponse])
def list_rules(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    return [RuleResponse.model_validate(r) for r in Categorizer(db, user_id).list_rules()]


@router.get("/rules/suggest", response_model=SuggestionResponse)
def suggest_envelope(
    merchant: str = Query(..., min_length=1, description="Merchant text to categorize"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Envelope suggested by the earliest matching rule, else merchant memory"""
    return SuggestionResponse(merchant=merchant, envelope_id=Categorizer(db, user_id).suggest(merchant))
