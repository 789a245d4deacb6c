"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Header, HTTPException, Request
from envelope_ledger.infrastructure.clients.bank_feed import BankFeedClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """
    Verified caller identity set by the upstream auth gateway.

    Raises:
        HTTPException: 401 when the header is missing or not a positive integer
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-ID header")
    if user_id <= 0:
        raise HTTPException(status_code=401, detail="Invalid X-User-ID header")
    return user_id


def get_bank_feed_client() -> BankFeedClient:
    """Provide bank feed client instance"""
    return BankFeedClient()
