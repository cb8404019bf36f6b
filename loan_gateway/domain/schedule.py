"""Simple-interest payment schedule generation for installment loans"""

from datetime import date
from decimal import Decimal
from typing import List, Tuple
from loan_gateway.domain.models import PaymentScheduleEntry, ContractTerms, LoanSummary
from loan_gateway.domain.exceptions import InvalidTermError, InvalidPrincipalError
from loan_gateway.utils.date_utils import add_months
from loan_gateway.utils.money import floor_cents


def calculate_total_interest(principal_cents: int, monthly_rate: Decimal, term_months: int) -> int:
    """Simple interest on the original principal for the whole term, floored to the minor unit"""
    return floor_cents(Decimal(principal_cents) * Decimal(monthly_rate) * term_months)


def generate_schedule(
    principal_cents: int,
    monthly_rate: Decimal,
    term_months: int,
    start_date: date,
) -> List[PaymentScheduleEntry]:
    """
    Generate the monthly installment schedule for a simple-interest loan.

    Requirements:
    - Interest computed once on the original principal: principal × rate × term
    - Principal and interest split evenly, floored to the minor unit
    - Last installment absorbs both rounding remainders so totals reconcile exactly
    - Installment i falls due start_date + i calendar months (day clamped to month end)

    Args:
        principal_cents: Loan principal in minor units
        monthly_rate: Interest rate per month as a fraction (0.02 = 2%)
        term_months: Number of monthly installments
        start_date: Contract start date; first installment is due one month later

    Raises:
        InvalidTermError: term_months <= 0
        InvalidPrincipalError: principal_cents <= 0 or monthly_rate < 0

    Example:
        1,200,000 cents at 0.02 for 12 months from 2024-01-31
        → 12 × (100,000 principal + 24,000 interest), due 2024-02-29, 2024-03-31, ...
    """
    if term_months <= 0:
        raise InvalidTermError(f"Term must be at least one month, got {term_months}")
    if principal_cents <= 0:
        raise InvalidPrincipalError(f"Principal must be positive, got {principal_cents}")
    if monthly_rate < 0:
        raise InvalidPrincipalError(f"Interest rate cannot be negative, got {monthly_rate}")

    total_interest = calculate_total_interest(principal_cents, monthly_rate, term_months)

    base_principal, principal_remainder = divmod(principal_cents, term_months)
    base_interest, interest_remainder = divmod(total_interest, term_months)

    entries = []
    for sequence in range(1, term_months + 1):
        is_last = sequence == term_months

        entries.append(
            PaymentScheduleEntry(
                sequence=sequence,
                due_date=add_months(start_date, sequence),
                principal_cents=base_principal + (principal_remainder if is_last else 0),
                interest_cents=base_interest + (interest_remainder if is_last else 0),
            )
        )

    return entries


def schedule_totals(entries: List[PaymentScheduleEntry]) -> Tuple[int, int]:
    """Return (total principal, total interest) across a schedule"""
    return (
        sum(e.principal_cents for e in entries),
        sum(e.interest_cents for e in entries),
    )


def calculate_loan_summary(terms: ContractTerms) -> LoanSummary:
    """Monthly payment, total interest and total repayment for a loan quote"""
    entries = generate_schedule(
        terms.principal_cents, terms.monthly_rate, terms.term_months, terms.start_date
    )
    total_principal, total_interest = schedule_totals(entries)

    return LoanSummary(
        monthly_payment_cents=entries[0].total_due_cents,
        total_interest_cents=total_interest,
        total_payment_cents=total_principal + total_interest,
        end_date=entries[-1].due_date,
    )
