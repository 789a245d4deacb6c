"""Pydantic schemas for API request/response validation.

Amounts are decimals in currency units (negative = expense). Send them as
JSON strings ("-45.67") to avoid binary float rounding; responses always
render them as strings. Request amounts with more than two decimal places
are rejected with 422 rather than rounded.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from decimal import Decimal
from typing import Annotated, List, Literal, Optional


Money = Annotated[Decimal, Field(decimal_places=2)]


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Accounts and envelopes


class AccountCreate(BaseModel):
    """Request body for POST /v1/accounts"""

    name: str = Field(..., min_length=1)
    type: Literal["checking", "savings", "credit"] = "checking"
    opening_balance: Money = Decimal("0.00")


class AccountResponse(_FromDomain):
    id: int
    name: str
    type: str
    balance: Decimal
    opening_balance: Decimal
    is_active: bool


class EnvelopeCreate(BaseModel):
    """Request body for POST /v1/envelopes"""

    name: str = Field(..., min_length=1)
    opening_balance: Money = Decimal("0.00")
    budgeted_amount: Money = Decimal("0.00")
    icon: str = "📁"
    category_id: Optional[int] = None
    is_monitored: bool = False


class EnvelopeResponse(_FromDomain):
    id: int
    name: str
    current_balance: Decimal
    budgeted_amount: Decimal
    opening_balance: Decimal
    icon: str
    category_id: Optional[int] = None
    is_active: bool
    is_monitored: bool


class AllocateRequest(BaseModel):
    """Request body for POST /v1/envelopes/{envelope_id}/allocate"""

    amount: Money
    note: Optional[str] = None


class TransferRequest(BaseModel):
    """Request body for POST /v1/envelopes/transfer"""

    from_envelope_id: int
    to_envelope_id: int
    amount: Money
    note: Optional[str] = None


class TransferResponse(BaseModel):
    source: EnvelopeResponse
    destination: EnvelopeResponse


# Transactions


class TransactionCreate(BaseModel):
    """Request body for POST /v1/transactions"""

    account_id: int
    amount: Money
    merchant: str = Field(..., min_length=1)
    date: date
    envelope_id: Optional[int] = None
    description: Optional[str] = None
    is_transfer: bool = False
    approved: bool = Field(False, description="Approve immediately instead of leaving pending")
    label_ids: List[int] = Field(default_factory=list)


class TransactionResponse(_FromDomain):
    id: int
    account_id: int
    amount: Decimal
    merchant: str
    date: date
    envelope_id: Optional[int] = None
    description: Optional[str] = None
    is_approved: bool
    is_transfer: bool
    source: str
    bank_transaction_id: Optional[str] = None
    bank_verified: bool
    duplicate_status: str
    duplicate_of_id: Optional[int] = None
    recurring_template_id: Optional[int] = None


class ApproveRequest(BaseModel):
    """Optional overrides applied just before approval"""

    envelope_id: Optional[int] = None
    description: Optional[str] = None
    label_ids: Optional[List[int]] = None


class ReassignRequest(BaseModel):
    envelope_id: Optional[int] = None


class BankRecordSchema(BaseModel):
    """One normalized bank record"""

    date: date
    amount: Money
    merchant: str = Field(..., min_length=1)
    bank_transaction_id: Optional[str] = None
    description: Optional[str] = None


class ImportRequest(BaseModel):
    """Request body for POST /v1/transactions/import"""

    account_id: int
    records: List[BankRecordSchema]


class ImportOutcomeSchema(_FromDomain):
    action: str
    transaction_id: Optional[int] = None
    duplicate_of_id: Optional[int] = None
    suggested_envelope_id: Optional[int] = None


class ImportResponse(BaseModel):
    created: int
    flagged: int
    skipped: int
    outcomes: List[ImportOutcomeSchema]


class SyncResponse(ImportResponse):
    """Response for POST /v1/bank-feed/{account_id}/sync"""

    account_id: int


# Duplicates


class DuplicatePair(BaseModel):
    bank: TransactionResponse
    manual: TransactionResponse


class DuplicateListResponse(BaseModel):
    duplicates: List[DuplicatePair]


class ResolveRequest(BaseModel):
    """Request body for POST /v1/duplicates/{transaction_id}/resolve"""

    action: Literal["merge", "keep_both", "delete_bank"]


class ResolutionResponse(_FromDomain):
    action: str
    kept_transaction_ids: List[int]
    deleted_transaction_ids: List[int]
    warning: Optional[str] = None


# Category rules


class RuleCreate(BaseModel):
    """Request body for POST /v1/rules"""

    pattern: str
    envelope_id: int


class RuleResponse(_FromDomain):
    id: int
    pattern: str
    envelope_id: int
    is_active: bool


class SuggestionResponse(BaseModel):
    merchant: str
    envelope_id: Optional[int] = None


# Recurring income


class SplitSchema(_FromDomain):
    envelope_id: int
    amount: Money


class RecurringCreate(BaseModel):
    """Request body for POST /v1/recurring"""

    account_id: int
    name: str = Field(..., min_length=1)
    amount: Money
    frequency: str = Field(..., description="weekly | fortnightly | monthly | quarterly | annual")
    next_date: date
    splits: List[SplitSchema] = Field(default_factory=list)
    merchant: Optional[str] = None
    surplus_envelope_id: Optional[int] = None
    end_date: Optional[date] = None


class RecurringResponse(_FromDomain):
    id: int
    name: str
    account_id: int
    amount: Decimal
    frequency: str
    next_date: date
    splits: List[SplitSchema]
    merchant: Optional[str] = None
    surplus_envelope_id: Optional[int] = None
    end_date: Optional[date] = None
    is_active: bool


class ProcessRequest(BaseModel):
    """Request body for POST /v1/recurring/{template_id}/process"""

    actual_amount: Money


class DistributionResponse(_FromDomain):
    template_id: int
    credited_envelopes: List[SplitSchema]
    surplus: Decimal
    transaction_ids: List[int]
    next_date: date


# Reconciliation


class AccountLineSchema(_FromDomain):
    account_id: int
    name: str
    balance: Decimal
    kind: str
    status: str


class EnvelopeLineSchema(_FromDomain):
    envelope_id: int
    name: str
    balance: Decimal
    status: str


class ReconciliationResponse(_FromDomain):
    """Response for GET /v1/reconciliation"""

    total_bank_balance: Decimal
    total_envelope_balance: Decimal
    difference: Decimal
    is_reconciled: bool
    accounts: List[AccountLineSchema]
    envelopes: List[EnvelopeLineSchema]


class IntegrityResponse(BaseModel):
    status: str


# Labels


class LabelCreate(BaseModel):
    name: str = Field(..., min_length=1)
    color: str = Field("#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")


class LabelResponse(_FromDomain):
    id: int
    name: str
    color: str
