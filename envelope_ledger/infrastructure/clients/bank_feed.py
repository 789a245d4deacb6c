"""Bank feed HTTP client for fetching normalized bank records"""

import httpx
from datetime import date
from decimal import Decimal
from typing import List
from envelope_ledger.domain.models import BankRecord
from envelope_ledger.domain.money import parse_money
from envelope_ledger.domain.exceptions import BankFeedError, InvalidAmountError
from envelope_ledger.config import settings


class BankFeedClient:
    """Client for the bank ingestion pipeline"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.bank_feed_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def get_transactions(self, account_ref: str) -> List[BankRecord]:
        """
        Fetch normalized transactions for one bank account.

        Raises:
            BankFeedError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/bank/transactions",
                    params={"account_ref": account_ref},
                )
                response.raise_for_status()
                # Amounts stay exact: JSON floats are parsed straight into Decimal
                data = response.json(parse_float=Decimal)

                return [
                    BankRecord(
                        date=date.fromisoformat(txn["date"]),
                        amount=parse_money(txn["amount"]),
                        merchant=txn["merchant"],
                        bank_transaction_id=txn.get("bank_transaction_id"),
                        description=txn.get("description"),
                    )
                    for txn in data.get("transactions", [])
                ]

            except httpx.TimeoutException as e:
                raise BankFeedError(f"Bank feed timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise BankFeedError(f"Bank feed error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise BankFeedError(f"Bank feed unreachable: {e}") from e
            except (KeyError, ValueError, TypeError, AttributeError, InvalidAmountError) as e:
                raise BankFeedError(f"Invalid transaction data from bank feed: {e}") from e
