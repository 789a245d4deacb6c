"""/v1/recurring - recurring income templates and their distribution"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import (
    DistributionResponse,
    ProcessRequest,
    RecurringCreate,
    RecurringResponse,
)
from envelope_ledger.domain.models import RecurringSplit
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.recurring import RecurringIncomeService

router = APIRouter()


@router.post("/recurring", response_model=RecurringResponse, status_code=201)
def create_template(
    body: RecurringCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    template = RecurringIncomeService(db, user_id).create_template(
        body.account_id,
        body.name,
        body.amount,
        body.frequency,
        body.next_date,
        [RecurringSplit(envelope_id=s.envelope_id, amount=s.amount) for s in body.splits],
        merchant=body.merchant,
        surplus_envelope_id=body.surplus_envelope_id,
        end_date=body.end_date,
    )
    return RecurringResponse.model_validate(template)


@router.post("/recurring/{template_id}/process", response_model=DistributionResponse)
def process_template(
    template_id: int,
    body: ProcessRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Distribute the amount actually received.

    Splits are credited their fixed amounts; the remainder (negative when
    less arrived than planned) goes to the surplus envelope.
    """
    result = RecurringIncomeService(db, user_id).process(template_id, body.actual_amount)
    return DistributionResponse.model_validate(result)
