"""/v1/duplicates - review of bank imports flagged as likely duplicates"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_current_user_id
from envelope_ledger.api.v1.schemas import (
    DuplicateListResponse,
    DuplicatePair,
    ResolutionResponse,
    ResolveRequest,
    TransactionResponse,
)
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.services.transactions import TransactionService

router = APIRouter()


@router.get("/duplicates", response_model=DuplicateListResponse)
def list_duplicates(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    """Flagged bank imports paired with the manual entry they resemble"""
    pairs = TransactionService(db, user_id).list_duplicates()
    return DuplicateListResponse(
        duplicates=[
            DuplicatePair(
                bank=TransactionResponse.model_validate(bank),
                manual=TransactionResponse.model_validate(manual),
            )
            for bank, manual in pairs
        ]
    )


@router.post("/duplicates/{transaction_id}/resolve", response_model=ResolutionResponse)
def resolve_duplicate(
    transaction_id: int,
    body: ResolveRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Resolve a flagged bank import (by its id).

    merge folds it into the manual entry, keep_both keeps both (and warns
    about double counting), delete_bank discards the bank copy.
    """
    result = TransactionService(db, user_id).resolve_duplicate(transaction_id, body.action)
    return ResolutionResponse.model_validate(result)
