"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional
from loan_gateway.domain.aging import next_payment_due
from loan_gateway.domain.models import (
    AgingReport,
    AmbiguousMatch,
    Contract,
    ContractTerms,
    Matched,
    MatchResult,
    PaymentScheduleEntry,
    SlipRecord,
)


class ContractTermsRequest(BaseModel):
    """Request body for POST /v1/schedule/preview"""

    principal_cents: int = Field(..., description="Loan principal in minor units")
    monthly_rate: Decimal = Field(..., description="Interest per month as a fraction, 0.02 = 2%")
    term_months: int = Field(..., description="Number of monthly installments")
    start_date: date = Field(..., description="Contract start; first installment due one month later")

    def to_terms(self) -> ContractTerms:
        return ContractTerms(
            principal_cents=self.principal_cents,
            monthly_rate=self.monthly_rate,
            term_months=self.term_months,
            start_date=self.start_date,
        )


class CreateContractRequest(ContractTermsRequest):
    """Request body for POST /v1/contracts"""

    borrower_id: str = Field(..., min_length=1, description="Borrower identifier")


class ScheduleEntrySchema(BaseModel):
    """Single installment in a payment schedule"""

    entry_id: Optional[str] = None
    sequence: int
    due_date: date
    principal_cents: int
    interest_cents: int
    total_due_cents: int
    paid_amount_cents: int = 0
    remaining_due_cents: int
    paid_date: Optional[date] = None
    status: str = "PENDING"

    @classmethod
    def from_entry(cls, entry: PaymentScheduleEntry) -> "ScheduleEntrySchema":
        return cls(
            entry_id=str(entry.id) if entry.id else None,
            sequence=entry.sequence,
            due_date=entry.due_date,
            principal_cents=entry.principal_cents,
            interest_cents=entry.interest_cents,
            total_due_cents=entry.total_due_cents,
            paid_amount_cents=entry.paid_amount_cents,
            remaining_due_cents=entry.remaining_due_cents,
            paid_date=entry.paid_date,
            status=entry.status.value,
        )


class SchedulePreviewResponse(BaseModel):
    """Response for POST /v1/schedule/preview"""

    monthly_payment_cents: int
    total_interest_cents: int
    total_payment_cents: int
    end_date: date
    entries: List[ScheduleEntrySchema]


class ContractResponse(BaseModel):
    """Response for POST /v1/contracts and GET /v1/contracts/{contract_id}"""

    contract_id: str
    borrower_id: str
    principal_cents: int
    monthly_rate: Decimal
    term_months: int
    start_date: date
    status: str
    next_due_date: Optional[date] = None
    next_due_cents: Optional[int] = None
    entries: List[ScheduleEntrySchema]

    @classmethod
    def from_domain(cls, contract: Contract, entries: List[PaymentScheduleEntry]) -> "ContractResponse":
        upcoming = next_payment_due(entries)
        return cls(
            contract_id=str(contract.id),
            borrower_id=contract.borrower_id,
            principal_cents=contract.principal_cents,
            monthly_rate=contract.monthly_rate,
            term_months=contract.term_months,
            start_date=contract.start_date,
            status=contract.status.value,
            next_due_date=upcoming.due_date if upcoming else None,
            next_due_cents=upcoming.remaining_due_cents if upcoming else None,
            entries=[ScheduleEntrySchema.from_entry(e) for e in entries],
        )


class EntryAgingSchema(BaseModel):
    """Aging overlay for one installment"""

    entry_id: Optional[str] = None
    sequence: int
    due_date: date
    status: str
    days_overdue: int
    remaining_due_cents: int


class AgingSummarySchema(BaseModel):
    total_outstanding_cents: int
    overdue_count: int
    overdue_amount_cents: int
    max_days_overdue: int
    worst_bucket: str


class AgingResponse(BaseModel):
    """Response for GET /v1/contracts/{contract_id}/aging"""

    contract_id: str
    as_of: date
    summary: AgingSummarySchema
    entries: List[EntryAgingSchema]

    @classmethod
    def from_report(cls, contract_id: str, report: AgingReport) -> "AgingResponse":
        summary = report.summary
        return cls(
            contract_id=contract_id,
            as_of=report.as_of,
            summary=AgingSummarySchema(
                total_outstanding_cents=summary.total_outstanding_cents,
                overdue_count=summary.overdue_count,
                overdue_amount_cents=summary.overdue_amount_cents,
                max_days_overdue=summary.max_days_overdue,
                worst_bucket=summary.worst_bucket.value,
            ),
            entries=[
                EntryAgingSchema(
                    entry_id=str(row.entry_id) if row.entry_id else None,
                    sequence=row.sequence,
                    due_date=row.due_date,
                    status=row.status.value,
                    days_overdue=row.days_overdue,
                    remaining_due_cents=row.remaining_due_cents,
                )
                for row in report.entries
            ],
        )


class VerifySlipRequest(BaseModel):
    """Request body for POST /v1/contracts/{contract_id}/slips/verify"""

    image_base64: str = Field(..., min_length=1, description="Slip image, base64 or data URL")
    mime_type: str = Field(..., min_length=1, description="Image mime type, e.g. image/jpeg")


class ManualBindRequest(BaseModel):
    """Request body for POST /v1/contracts/{contract_id}/slips/bind"""

    entry_id: str = Field(..., description="Schedule entry chosen by the reviewer")
    transaction_id: str = Field(..., min_length=1, description="Bank transaction reference from the slip")
    amount_cents: int = Field(..., description="Slip amount in minor units")
    transaction_at: datetime = Field(..., description="Transfer date and time from the slip")
    payer_reference: str = ""
    payee_reference: str = ""
    reviewer_id: Optional[str] = Field(None, description="Staff member approving the binding")

    def to_slip(self) -> SlipRecord:
        return SlipRecord(
            transaction_id=self.transaction_id,
            amount_cents=self.amount_cents,
            transaction_at=self.transaction_at,
            payer_reference=self.payer_reference,
            payee_reference=self.payee_reference,
        )


class VerifySlipResponse(BaseModel):
    """Response for POST /v1/contracts/{contract_id}/slips/verify"""

    outcome: Literal["matched", "no_match", "ambiguous"]
    entry_id: Optional[str] = None
    sequence: Optional[int] = None
    confidence: Optional[float] = None
    rule: Optional[str] = None
    reason: Optional[str] = None
    candidate_ids: List[str] = []

    @classmethod
    def from_result(cls, result: MatchResult) -> "VerifySlipResponse":
        if isinstance(result, Matched):
            return cls(
                outcome="matched",
                entry_id=str(result.entry_id),
                sequence=result.sequence,
                confidence=result.confidence,
                rule=result.rule,
            )
        if isinstance(result, AmbiguousMatch):
            return cls(
                outcome="ambiguous",
                reason="Manual review required",
                candidate_ids=[str(c) for c in result.candidate_ids],
            )
        return cls(outcome="no_match", reason=result.reason)


class BucketSchema(BaseModel):
    count: int
    amount_cents: int


class PortfolioAgingResponse(BaseModel):
    """Response for GET /v1/portfolio/aging"""

    as_of: date
    buckets: Dict[str, BucketSchema]
