"""Auto-matching engine - binds an OCR-extracted slip to at most one schedule entry"""

import uuid
from typing import List
from loan_gateway.domain.exceptions import ScheduleEntryNotFoundError
from loan_gateway.domain.models import (
    AmbiguousMatch,
    BindPlan,
    EntryStatus,
    Matched,
    MatchResult,
    NoMatch,
    PaymentScheduleEntry,
    SlipRecord,
)
from loan_gateway.utils.date_utils import days_between

DUPLICATE_SUBMISSION = "duplicate submission"
NO_ELIGIBLE_ENTRY = "no eligible schedule entry"
LOST_RACE = "lost race"
ENTRY_SETTLED = "entry already settled"
EXCEEDS_ENTRY_BALANCE = "amount exceeds entry balance"

# Confidence per rule
CONFIDENCE_EXACT = 1.0
CONFIDENCE_CLOSEST_DUE_DATE = 0.9
CONFIDENCE_OUT_OF_WINDOW = 0.6
CONFIDENCE_PARTIAL = 0.5
CONFIDENCE_MANUAL = 1.0


def _distance_days(entry: PaymentScheduleEntry, slip: SlipRecord) -> int:
    return abs(days_between(entry.due_date, slip.transaction_date))


def open_candidates(schedule: List[PaymentScheduleEntry]) -> List[PaymentScheduleEntry]:
    """Entries that can still take a payment, oldest obligation first"""
    return sorted(
        (e for e in schedule if e.is_open),
        key=lambda e: (e.due_date, e.sequence),
    )


def match(slip: SlipRecord, schedule: List[PaymentScheduleEntry], window_days: int) -> MatchResult:
    """
    Decide which schedule entry a slip pays.

    Rules (first satisfied wins):
    1. Transaction id already bound anywhere on the contract → duplicate
    2. One open entry whose remaining due equals the slip amount and whose
       due date is within window_days of the slip date → exact match
    3. Several such entries → closest due date, then lowest sequence
       (amount-equal entries all outside the window: one is bound with
       reduced confidence, several need manual review)
    4. Slip smaller than the earliest open entry's remaining due → partial
       payment against that entry
    5. No open entry, or slip larger than everything outstanding → no match

    A slip that covers more than the earliest entry but not the whole
    balance is returned as ambiguous with the entries it would span.
    """
    if any(slip.transaction_id in entry.slip_refs for entry in schedule):
        return NoMatch(DUPLICATE_SUBMISSION)

    candidates = open_candidates(schedule)
    if not candidates or slip.amount_cents <= 0:
        return NoMatch(NO_ELIGIBLE_ENTRY)

    exact = [c for c in candidates if c.remaining_due_cents == slip.amount_cents]
    if exact:
        in_window = [c for c in exact if _distance_days(c, slip) <= window_days]

        if len(in_window) == 1:
            entry = in_window[0]
            return Matched(entry.id, entry.sequence, CONFIDENCE_EXACT, "exact")

        if in_window:
            entry = min(in_window, key=lambda c: (_distance_days(c, slip), c.sequence))
            return Matched(entry.id, entry.sequence, CONFIDENCE_CLOSEST_DUE_DATE, "closest_due_date")

        if len(exact) == 1:
            entry = exact[0]
            return Matched(entry.id, entry.sequence, CONFIDENCE_OUT_OF_WINDOW, "out_of_window")

        return AmbiguousMatch(tuple(c.id for c in exact))

    earliest = candidates[0]
    if slip.amount_cents < earliest.remaining_due_cents:
        return Matched(earliest.id, earliest.sequence, CONFIDENCE_PARTIAL, "partial")

    if slip.amount_cents > sum(c.remaining_due_cents for c in candidates):
        return NoMatch(NO_ELIGIBLE_ENTRY)

    # Spans several installments; reviewer allocates it
    spanned = []
    covered = 0
    for candidate in candidates:
        spanned.append(candidate.id)
        covered += candidate.remaining_due_cents
        if covered >= slip.amount_cents:
            break

    return AmbiguousMatch(tuple(spanned))


def review_match(slip: SlipRecord, schedule: List[PaymentScheduleEntry], entry_id: uuid.UUID) -> MatchResult:
    """
    Apply a reviewer's choice of entry for a slip the engine could not place.

    The duplicate guard still applies. The chosen entry must be open and the
    slip must not pay more than its remaining due.

    Raises:
        ScheduleEntryNotFoundError: entry_id is not part of this schedule
    """
    entry = next((e for e in schedule if e.id == entry_id), None)
    if entry is None:
        raise ScheduleEntryNotFoundError(f"Schedule entry {entry_id} not found")

    if any(slip.transaction_id in e.slip_refs for e in schedule):
        return NoMatch(DUPLICATE_SUBMISSION)
    if not entry.is_open:
        return NoMatch(ENTRY_SETTLED)
    if slip.amount_cents <= 0:
        return NoMatch(NO_ELIGIBLE_ENTRY)
    if slip.amount_cents > entry.remaining_due_cents:
        return NoMatch(EXCEEDS_ENTRY_BALANCE)

    return Matched(entry.id, entry.sequence, CONFIDENCE_MANUAL, "manual")


def plan_binding(slip: SlipRecord, schedule: List[PaymentScheduleEntry], result: Matched) -> BindPlan:
    """State transition that applies the slip to the matched entry"""
    entry = next(e for e in schedule if e.id == result.entry_id and e.sequence == result.sequence)

    new_paid = entry.paid_amount_cents + slip.amount_cents
    settled = new_paid >= entry.total_due_cents

    return BindPlan(
        entry_id=entry.id,
        expected_version=entry.version,
        new_status=EntryStatus.PAID if settled else EntryStatus.PARTIAL,
        new_paid_amount_cents=new_paid,
        applied_cents=slip.amount_cents,
        paid_date=slip.transaction_date if settled else None,
    )
