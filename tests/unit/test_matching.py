"""Unit tests for the slip auto-matching engine"""

import uuid
import pytest
from datetime import date
from loan_gateway.domain.exceptions import ScheduleEntryNotFoundError
from loan_gateway.domain.matching import (
    DUPLICATE_SUBMISSION,
    ENTRY_SETTLED,
    EXCEEDS_ENTRY_BALANCE,
    NO_ELIGIBLE_ENTRY,
    match,
    open_candidates,
    plan_binding,
    review_match,
)
from loan_gateway.domain.models import (
    AmbiguousMatch,
    EntryStatus,
    Matched,
    NoMatch,
    PaymentScheduleEntry,
)
from loan_gateway.domain.schedule import generate_schedule

WINDOW_DAYS = 7


@pytest.fixture
def schedule(loan_terms):
    """Twelve installments of 1,240.00, first due 2024-02-29"""
    entries = generate_schedule(
        loan_terms.principal_cents, loan_terms.monthly_rate, loan_terms.term_months, loan_terms.start_date
    )
    for entry in entries:
        entry.id = uuid.uuid4()
    return entries


def _entry(sequence: int, due: date, total_cents: int, **kwargs) -> PaymentScheduleEntry:
    return PaymentScheduleEntry(
        id=uuid.uuid4(),
        sequence=sequence,
        due_date=due,
        principal_cents=total_cents,
        interest_cents=0,
        **kwargs,
    )


def test_exact_amount_within_window(schedule, make_slip):
    """1,240.00 paid 2024-02-28 settles installment #1"""
    result = match(make_slip(124_000, on=date(2024, 2, 28)), schedule, WINDOW_DAYS)

    assert result == Matched(schedule[0].id, 1, 1.0, "exact")


def test_exact_match_binds_as_paid(schedule, make_slip):
    slip = make_slip(124_000, on=date(2024, 2, 28))
    result = match(slip, schedule, WINDOW_DAYS)

    plan = plan_binding(slip, schedule, result)

    assert plan.entry_id == schedule[0].id
    assert plan.expected_version == 1
    assert plan.new_status == EntryStatus.PAID
    assert plan.new_paid_amount_cents == 124_000
    assert plan.paid_date == date(2024, 2, 28)


def test_duplicate_transaction_id_on_settled_entry(schedule, make_slip):
    """A transaction id bound anywhere on the contract never binds again"""
    schedule[0].status = EntryStatus.PAID
    schedule[0].paid_amount_cents = 124_000
    schedule[0].slip_refs = ("TXN-0001",)

    for amount, on in [(124_000, date(2024, 3, 31)), (50_000, date(2024, 3, 1)), (1, date(2030, 1, 1))]:
        result = match(make_slip(amount, on=on, transaction_id="TXN-0001"), schedule, WINDOW_DAYS)
        assert result == NoMatch(DUPLICATE_SUBMISSION)


def test_duplicate_transaction_id_on_open_entry(schedule, make_slip):
    schedule[0].status = EntryStatus.PARTIAL
    schedule[0].paid_amount_cents = 50_000
    schedule[0].slip_refs = ("TXN-0001",)

    result = match(make_slip(74_000, transaction_id="TXN-0001"), schedule, WINDOW_DAYS)

    assert result == NoMatch(DUPLICATE_SUBMISSION)


def test_closest_due_date_wins(make_slip):
    entries = [
        _entry(1, date(2024, 3, 1), 50_000),
        _entry(2, date(2024, 3, 5), 50_000),
    ]
    result = match(make_slip(50_000, on=date(2024, 3, 4)), entries, WINDOW_DAYS)

    assert result == Matched(entries[1].id, 2, 0.9, "closest_due_date")


def test_equal_distance_prefers_lowest_sequence(make_slip):
    entries = [
        _entry(1, date(2024, 3, 1), 50_000),
        _entry(2, date(2024, 3, 5), 50_000),
    ]

    result = match(make_slip(50_000, on=date(2024, 3, 3)), entries, WINDOW_DAYS)

    assert result == Matched(entries[0].id, 1, 0.9, "closest_due_date")


def test_single_exact_amount_outside_window(make_slip):
    """Late payment of a uniquely sized installment still binds, with lower confidence"""
    entries = [
        _entry(1, date(2024, 2, 29), 124_000),
        _entry(2, date(2024, 3, 31), 124_500),
    ]

    result = match(make_slip(124_000, on=date(2024, 4, 20)), entries, WINDOW_DAYS)

    assert result == Matched(entries[0].id, 1, 0.6, "out_of_window")


def test_several_exact_amounts_outside_window_are_ambiguous(schedule, make_slip):
    result = match(make_slip(124_000, on=date(2024, 2, 10)), schedule, WINDOW_DAYS)

    assert isinstance(result, AmbiguousMatch)
    assert result.candidate_ids == tuple(e.id for e in schedule)


def test_partial_payment_goes_to_oldest_open_entry(schedule, make_slip):
    """500.00 against 1,240.00 leaves 740.00 due on installment #1"""
    schedule[0].status = EntryStatus.OVERDUE
    slip = make_slip(50_000, on=date(2024, 3, 20))

    result = match(slip, schedule, WINDOW_DAYS)
    assert result == Matched(schedule[0].id, 1, 0.5, "partial")

    plan = plan_binding(slip, schedule, result)
    assert plan.new_status == EntryStatus.PARTIAL
    assert plan.new_paid_amount_cents == 50_000
    assert plan.paid_date is None
    assert schedule[0].total_due_cents - plan.new_paid_amount_cents == 74_000


def test_paying_off_partial_remaining(schedule, make_slip):
    schedule[0].status = EntryStatus.PARTIAL
    schedule[0].paid_amount_cents = 50_000
    schedule[0].slip_refs = ("TXN-0001",)
    slip = make_slip(74_000, on=date(2024, 3, 2), transaction_id="TXN-0002")

    result = match(slip, schedule, WINDOW_DAYS)
    assert result == Matched(schedule[0].id, 1, 1.0, "exact")

    plan = plan_binding(slip, schedule, result)
    assert plan.new_status == EntryStatus.PAID
    assert plan.new_paid_amount_cents == 124_000
    assert plan.paid_date == date(2024, 3, 2)


def test_settled_entries_are_never_candidates(schedule, make_slip):
    schedule[0].status = EntryStatus.PAID
    schedule[0].paid_amount_cents = 124_000

    assert schedule[0] not in open_candidates(schedule)

    result = match(make_slip(124_000, on=date(2024, 3, 30)), schedule, WINDOW_DAYS)
    assert result == Matched(schedule[1].id, 2, 1.0, "exact")


def test_overpayment_is_no_match(schedule, make_slip):
    result = match(make_slip(1_488_001), schedule, WINDOW_DAYS)

    assert result == NoMatch(NO_ELIGIBLE_ENTRY)


def test_no_open_entries_is_no_match(schedule, make_slip):
    for entry in schedule:
        entry.status = EntryStatus.PAID
        entry.paid_amount_cents = entry.total_due_cents

    assert match(make_slip(124_000), schedule, WINDOW_DAYS) == NoMatch(NO_ELIGIBLE_ENTRY)
    assert match(make_slip(124_000), [], WINDOW_DAYS) == NoMatch(NO_ELIGIBLE_ENTRY)


def test_non_positive_amount_is_no_match(schedule, make_slip):
    assert match(make_slip(0), schedule, WINDOW_DAYS) == NoMatch(NO_ELIGIBLE_ENTRY)


def test_amount_spanning_several_installments_is_ambiguous(schedule, make_slip):
    result = match(make_slip(200_000), schedule, WINDOW_DAYS)

    assert result == AmbiguousMatch((schedule[0].id, schedule[1].id))


def test_reviewer_binds_ambiguous_slip_to_chosen_entry(schedule, make_slip):
    """A slip the engine found ambiguous is applied where the reviewer says"""
    slip = make_slip(124_000, on=date(2024, 2, 10))
    assert isinstance(match(slip, schedule, WINDOW_DAYS), AmbiguousMatch)

    result = review_match(slip, schedule, schedule[0].id)
    assert result == Matched(schedule[0].id, 1, 1.0, "manual")

    plan = plan_binding(slip, schedule, result)
    assert plan.new_status == EntryStatus.PAID
    assert plan.paid_date == date(2024, 2, 10)


def test_reviewer_partial_payment(schedule, make_slip):
    slip = make_slip(30_000)

    result = review_match(slip, schedule, schedule[2].id)

    assert result == Matched(schedule[2].id, 3, 1.0, "manual")
    assert plan_binding(slip, schedule, result).new_status == EntryStatus.PARTIAL


def test_reviewer_cannot_rebind_transaction(schedule, make_slip):
    schedule[0].status = EntryStatus.PARTIAL
    schedule[0].paid_amount_cents = 50_000
    schedule[0].slip_refs = ("TXN-0001",)

    result = review_match(make_slip(50_000), schedule, schedule[1].id)

    assert result == NoMatch(DUPLICATE_SUBMISSION)


def test_reviewer_cannot_pay_settled_entry(schedule, make_slip):
    schedule[0].status = EntryStatus.PAID
    schedule[0].paid_amount_cents = 124_000

    assert review_match(make_slip(124_000), schedule, schedule[0].id) == NoMatch(ENTRY_SETTLED)


def test_reviewer_cannot_overpay_entry(schedule, make_slip):
    result = review_match(make_slip(124_001), schedule, schedule[0].id)

    assert result == NoMatch(EXCEEDS_ENTRY_BALANCE)


def test_reviewer_entry_must_belong_to_schedule(schedule, make_slip):
    with pytest.raises(ScheduleEntryNotFoundError):
        review_match(make_slip(124_000), schedule, uuid.uuid4())
