"""Aging classifier - overdue overlay and aging buckets derived from a schedule"""

import uuid
from datetime import date
from typing import Iterable, List, Optional
from loan_gateway.domain.models import (
    AgingBucket,
    AgingReport,
    ContractAgingSummary,
    ContractStatus,
    EntryAging,
    EntryStatus,
    PaymentScheduleEntry,
    PortfolioAgingReport,
)
from loan_gateway.utils.date_utils import days_between


def bucket_for(days_overdue: int) -> AgingBucket:
    """
    Map days overdue to a reporting bucket.

    Buckets:
    - 0:      CURRENT (nothing past due)
    - 1-30:   early delinquency
    - 31-60
    - 61-90
    - 90+:    candidate for default
    """
    if days_overdue <= 0:
        return AgingBucket.CURRENT
    elif days_overdue <= 30:
        return AgingBucket.DAYS_1_30
    elif days_overdue <= 60:
        return AgingBucket.DAYS_31_60
    elif days_overdue <= 90:
        return AgingBucket.DAYS_61_90
    else:
        return AgingBucket.DAYS_90_PLUS


def _overlay_entry(entry: PaymentScheduleEntry, as_of: date) -> EntryAging:
    if entry.is_settled:
        status = EntryStatus.PAID
        days_overdue = 0
    elif entry.due_date < as_of:
        status = EntryStatus.OVERDUE
        days_overdue = days_between(entry.due_date, as_of)
    else:
        # Not yet due; a stale persisted OVERDUE falls back to its payment state
        status = EntryStatus.PARTIAL if entry.paid_amount_cents > 0 else EntryStatus.PENDING
        days_overdue = 0

    return EntryAging(
        entry_id=entry.id,
        sequence=entry.sequence,
        due_date=entry.due_date,
        status=status,
        days_overdue=days_overdue,
        remaining_due_cents=0 if entry.is_settled else entry.remaining_due_cents,
    )


def classify(schedule: List[PaymentScheduleEntry], as_of: date) -> AgingReport:
    """
    Compute the overdue overlay and contract aging summary as of a date.

    An unsettled entry is OVERDUE when its due date is strictly before as_of;
    days overdue are calendar days. The schedule is never modified, so
    repeated calls with the same inputs give the same report.
    """
    overlay = [_overlay_entry(entry, as_of) for entry in schedule]
    overdue = [row for row in overlay if row.status == EntryStatus.OVERDUE]
    max_days = max((row.days_overdue for row in overdue), default=0)

    summary = ContractAgingSummary(
        total_outstanding_cents=sum(row.remaining_due_cents for row in overlay),
        overdue_count=len(overdue),
        overdue_amount_cents=sum(row.remaining_due_cents for row in overdue),
        max_days_overdue=max_days,
        worst_bucket=bucket_for(max_days),
    )

    return AgingReport(as_of=as_of, entries=overlay, summary=summary)


def overdue_transitions(schedule: List[PaymentScheduleEntry], report: AgingReport) -> List[uuid.UUID]:
    """Ids of entries persisted as PENDING that the overlay now shows OVERDUE"""
    overlay_by_sequence = {row.sequence: row for row in report.entries}
    return [
        entry.id
        for entry in schedule
        if entry.id is not None
        and entry.status == EntryStatus.PENDING
        and overlay_by_sequence[entry.sequence].status == EntryStatus.OVERDUE
    ]


def next_payment_due(schedule: List[PaymentScheduleEntry]) -> Optional[PaymentScheduleEntry]:
    """Earliest unsettled installment, overdue or upcoming"""
    unsettled = [e for e in schedule if not e.is_settled]
    if not unsettled:
        return None
    return min(unsettled, key=lambda e: (e.due_date, e.sequence))


def derive_contract_status(
    current: ContractStatus,
    summary: ContractAgingSummary,
    default_threshold_days: int,
) -> ContractStatus:
    """
    Contract status implied by its schedule.

    - Nothing outstanding → CLOSED (terminal)
    - Oldest arrears beyond the threshold → DEFAULTED
    - Otherwise ACTIVE, so a cured default returns to ACTIVE
    """
    if current == ContractStatus.CLOSED or summary.total_outstanding_cents == 0:
        return ContractStatus.CLOSED
    if summary.max_days_overdue > default_threshold_days:
        return ContractStatus.DEFAULTED
    return ContractStatus.ACTIVE


def build_portfolio_report(as_of: date, summaries: Iterable[ContractAgingSummary]) -> PortfolioAgingReport:
    """Group contract outstanding balances by their worst aging bucket"""
    report = PortfolioAgingReport(as_of=as_of)

    for summary in summaries:
        if summary.total_outstanding_cents == 0:
            continue
        totals = report.buckets[summary.worst_bucket]
        totals.count += 1
        totals.amount_cents += summary.total_outstanding_cents

    return report
