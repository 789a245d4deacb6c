"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

# Transaction sources
SOURCE_MANUAL = "manual"
SOURCE_BANK_IMPORT = "bank_import"

# Duplicate review states
DUPLICATE_NONE = "none"
DUPLICATE_POTENTIAL = "potential"
DUPLICATE_REVIEWED = "reviewed"
DUPLICATE_MERGED = "merged"

# Duplicate resolution actions
ACTION_MERGE = "merge"
ACTION_KEEP_BOTH = "keep_both"
ACTION_DELETE_BANK = "delete_bank"

ACCOUNT_TYPES = ("checking", "savings", "credit")
FREQUENCIES = ("weekly", "fortnightly", "monthly", "quarterly", "annual")


@dataclass
class Account:
    """Bank account owned by a single user"""

    id: int
    name: str
    type: str  # "checking", "savings" or "credit"
    balance: Decimal
    opening_balance: Decimal
    is_active: bool = True


@dataclass
class Envelope:
    """Named bucket of budgeted funds"""

    id: int
    name: str
    current_balance: Decimal
    budgeted_amount: Decimal = Decimal("0.00")
    opening_balance: Decimal = Decimal("0.00")
    icon: str = "📁"
    category_id: Optional[int] = None
    is_active: bool = True
    is_monitored: bool = False


@dataclass
class Transaction:
    """Ledger transaction; amount is signed (negative = expense)"""

    id: int
    account_id: int
    amount: Decimal
    merchant: str
    date: date
    envelope_id: Optional[int] = None
    description: Optional[str] = None
    is_approved: bool = False
    is_transfer: bool = False
    source: str = SOURCE_MANUAL
    bank_transaction_id: Optional[str] = None
    bank_verified: bool = False
    duplicate_status: str = DUPLICATE_NONE
    duplicate_of_id: Optional[int] = None
    recurring_template_id: Optional[int] = None


@dataclass
class CategoryRule:
    """Merchant pattern mapped to an envelope; ids follow creation order"""

    id: int
    pattern: str
    envelope_id: int
    is_active: bool = True


@dataclass
class MerchantMemory:
    """Envelope last chosen for a merchant on approval"""

    merchant: str
    last_envelope_id: int
    frequency: int
    last_used: datetime


@dataclass
class RecurringSplit:
    """Fixed allocation of a recurring receipt to one envelope"""

    envelope_id: int
    amount: Decimal


@dataclass
class RecurringTemplate:
    """Expected recurring income with planned envelope splits"""

    id: int
    name: str
    account_id: int
    amount: Decimal
    frequency: str
    next_date: date
    splits: List[RecurringSplit] = field(default_factory=list)
    merchant: Optional[str] = None
    surplus_envelope_id: Optional[int] = None
    end_date: Optional[date] = None
    is_active: bool = True


@dataclass
class BalanceDelta:
    """Change to apply to an account and/or envelope for one transaction"""

    transaction_id: int
    account_id: int
    envelope_id: Optional[int]
    amount: Decimal


@dataclass
class DuplicateMatch:
    """Manual transaction judged to duplicate a bank import"""

    candidate: Transaction
    day_gap: int
    strength: str  # "strong" (exact amount) or "weak" (within tolerance)


@dataclass
class CreditedEnvelope:
    envelope_id: int
    amount: Decimal


@dataclass
class DistributionPlan:
    """Envelope credits computed for one recurring receipt"""

    credits: List[CreditedEnvelope]
    surplus: Decimal
    surplus_envelope_id: Optional[int]

    @property
    def total(self) -> Decimal:
        return sum((c.amount for c in self.credits), Decimal("0.00")) + self.surplus


@dataclass
class DistributionResult:
    """Outcome of processing a recurring template"""

    template_id: int
    credited_envelopes: List[CreditedEnvelope]
    surplus: Decimal
    transaction_ids: List[int]
    next_date: date


@dataclass
class AccountLine:
    account_id: int
    name: str
    balance: Decimal
    kind: str  # "asset" or "liability"
    status: str  # "positive" or "negative"


@dataclass
class EnvelopeLine:
    envelope_id: int
    name: str
    balance: Decimal
    status: str  # "positive" or "overspent"


@dataclass
class ReconciliationReport:
    """Aggregate bank vs envelope balance comparison"""

    total_bank_balance: Decimal
    total_envelope_balance: Decimal
    difference: Decimal
    is_reconciled: bool
    accounts: List[AccountLine] = field(default_factory=list)
    envelopes: List[EnvelopeLine] = field(default_factory=list)


@dataclass
class ResolutionResult:
    """Outcome of resolving a flagged duplicate"""

    action: str
    kept_transaction_ids: List[int]
    deleted_transaction_ids: List[int]
    warning: Optional[str] = None


@dataclass
class ImportOutcome:
    """Outcome of importing one bank record"""

    action: str  # "created", "flagged" or "skipped"
    transaction_id: Optional[int]
    duplicate_of_id: Optional[int] = None
    suggested_envelope_id: Optional[int] = None


@dataclass
class BankRecord:
    """Normalized transaction delivered by the bank ingestion pipeline"""

    date: date
    amount: Decimal
    merchant: str
    bank_transaction_id: Optional[str] = None
    description: Optional[str] = None
