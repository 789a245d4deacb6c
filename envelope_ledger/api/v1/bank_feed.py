"""POST /v1/bank-feed/{account_id}/sync - pull and import records from the bank feed"""

import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from envelope_ledger.api.dependencies import get_bank_feed_client, get_current_user_id, get_request_id
from envelope_ledger.api.v1.schemas import SyncResponse
from envelope_ledger.api.v1.transactions import import_response
from envelope_ledger.domain.exceptions import BankFeedError
from envelope_ledger.infrastructure.clients.bank_feed import BankFeedClient
from envelope_ledger.infrastructure.database.session import get_db
from envelope_ledger.infrastructure.observability.metrics import bank_feed_failures_counter
from envelope_ledger.services.budget import BudgetService
from envelope_ledger.services.transactions import TransactionService

router = APIRouter()


@router.post("/bank-feed/{account_id}/sync", response_model=SyncResponse)
async def sync_bank_feed(
    account_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    bank_feed: BankFeedClient = Depends(get_bank_feed_client),
):
    """
    Import the account's latest bank records.

    Flow:
    1. Check the caller owns the account
    2. Fetch normalized records from the bank feed
    3. Import them in one unit of work (already-seen bank ids are skipped)
    """
    request_id = get_request_id(request)
    BudgetService(db, user_id).get_account(account_id)

    try:
        records = await bank_feed.get_transactions(str(account_id))
    except BankFeedError as e:
        bank_feed_failures_counter.inc()
        logging.error(f"Bank feed error: {e}", extra={"request_id": request_id, "account_id": account_id})
        raise

    outcomes = TransactionService(db, user_id).import_bank_transactions(account_id, records)
    return SyncResponse(account_id=account_id, **import_response(outcomes))
