"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


class ContractStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    DEFAULTED = "DEFAULTED"


class EntryStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"


# Statuses that can still receive a payment
OPEN_STATUSES = (EntryStatus.PENDING, EntryStatus.PARTIAL, EntryStatus.OVERDUE)


class AgingBucket(str, Enum):
    CURRENT = "CURRENT"
    DAYS_1_30 = "1-30"
    DAYS_31_60 = "31-60"
    DAYS_61_90 = "61-90"
    DAYS_90_PLUS = "90+"


@dataclass(frozen=True)
class ContractTerms:
    """Loan terms agreed at approval time"""

    principal_cents: int
    monthly_rate: Decimal  # Fraction per month, 0.02 = 2%
    term_months: int
    start_date: date


@dataclass
class Contract:
    """Installment loan contract"""

    id: uuid.UUID
    borrower_id: str
    principal_cents: int
    monthly_rate: Decimal
    term_months: int
    start_date: date
    status: ContractStatus = ContractStatus.ACTIVE

    @property
    def terms(self) -> ContractTerms:
        return ContractTerms(
            principal_cents=self.principal_cents,
            monthly_rate=self.monthly_rate,
            term_months=self.term_months,
            start_date=self.start_date,
        )


@dataclass
class PaymentScheduleEntry:
    """Single installment obligation within a contract's payment plan"""

    sequence: int
    due_date: date
    principal_cents: int
    interest_cents: int
    status: EntryStatus = EntryStatus.PENDING
    paid_amount_cents: int = 0
    paid_date: Optional[date] = None
    slip_refs: Tuple[str, ...] = ()
    id: Optional[uuid.UUID] = None
    contract_id: Optional[uuid.UUID] = None
    version: int = 1

    @property
    def total_due_cents(self) -> int:
        return self.principal_cents + self.interest_cents

    @property
    def remaining_due_cents(self) -> int:
        return self.total_due_cents - self.paid_amount_cents

    @property
    def is_settled(self) -> bool:
        return self.status == EntryStatus.PAID

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


@dataclass(frozen=True)
class SlipRecord:
    """Canonical payment slip data extracted by OCR"""

    transaction_id: str  # Provider-assigned, used for idempotency
    amount_cents: int
    transaction_at: datetime
    payer_reference: str
    payee_reference: str

    @property
    def transaction_date(self) -> date:
        return self.transaction_at.date()


@dataclass(frozen=True)
class Matched:
    """Slip binds to one schedule entry"""

    entry_id: uuid.UUID
    sequence: int
    confidence: float
    rule: str  # exact | closest_due_date | out_of_window | partial | manual


@dataclass(frozen=True)
class NoMatch:
    """Slip cannot be bound; reason is shown to reviewers"""

    reason: str


@dataclass(frozen=True)
class AmbiguousMatch:
    """Several entries could take the slip; needs manual allocation"""

    candidate_ids: Tuple[uuid.UUID, ...]


MatchResult = Union[Matched, NoMatch, AmbiguousMatch]


@dataclass(frozen=True)
class BindPlan:
    """State transition the gateway commits for a Matched result"""

    entry_id: uuid.UUID
    expected_version: int
    new_status: EntryStatus
    new_paid_amount_cents: int
    applied_cents: int
    paid_date: Optional[date]


@dataclass(frozen=True)
class EntryAging:
    """Aging overlay for one schedule entry"""

    entry_id: Optional[uuid.UUID]
    sequence: int
    due_date: date
    status: EntryStatus
    days_overdue: int
    remaining_due_cents: int


@dataclass(frozen=True)
class ContractAgingSummary:
    """Contract-level aging aggregates"""

    total_outstanding_cents: int
    overdue_count: int
    overdue_amount_cents: int
    max_days_overdue: int
    worst_bucket: AgingBucket


@dataclass(frozen=True)
class AgingReport:
    """Output of the aging classifier"""

    as_of: date
    entries: List[EntryAging]
    summary: ContractAgingSummary


@dataclass(frozen=True)
class LoanSummary:
    """Headline figures shown when a loan is quoted"""

    monthly_payment_cents: int
    total_interest_cents: int
    total_payment_cents: int
    end_date: date


@dataclass
class BucketTotals:
    count: int = 0
    amount_cents: int = 0


@dataclass
class PortfolioAgingReport:
    """Outstanding balances of all contracts grouped by aging bucket"""

    as_of: date
    buckets: Dict[AgingBucket, BucketTotals] = field(
        default_factory=lambda: {bucket: BucketTotals() for bucket in AgingBucket}
    )
