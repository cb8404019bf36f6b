"""Data access layer for contracts and payment schedules"""

import uuid
from typing import Iterable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from loan_gateway.infrastructure.database.models import LoanContract, ScheduleEntryRow, SlipBinding
from loan_gateway.domain.exceptions import BindConflictError, DuplicateSubmissionError
from loan_gateway.domain.models import (
    BindPlan,
    Contract,
    ContractStatus,
    ContractTerms,
    EntryStatus,
    Matched,
    OPEN_STATUSES,
    PaymentScheduleEntry,
    SlipRecord,
)


def _to_contract(row: LoanContract) -> Contract:
    return Contract(
        id=row.id,
        borrower_id=row.borrower_id,
        principal_cents=row.principal_cents,
        monthly_rate=row.monthly_rate,
        term_months=row.term_months,
        start_date=row.start_date,
        status=ContractStatus(row.status),
    )


def _to_entry(row: ScheduleEntryRow) -> PaymentScheduleEntry:
    return PaymentScheduleEntry(
        id=row.id,
        contract_id=row.contract_id,
        sequence=row.sequence,
        due_date=row.due_date,
        principal_cents=row.principal_cents,
        interest_cents=row.interest_cents,
        status=EntryStatus(row.status),
        paid_amount_cents=row.paid_amount_cents,
        paid_date=row.paid_date,
        slip_refs=tuple(b.transaction_id for b in row.bindings),
        version=row.version,
    )


class ContractRepository:
    """Repository for contracts, their schedules and slip bindings"""

    def __init__(self, db: Session):
        self.db = db

    def create_contract(
        self,
        borrower_id: str,
        terms: ContractTerms,
        entries: List[PaymentScheduleEntry],
    ) -> Contract:
        """Persist a contract together with its generated schedule"""
        db_contract = LoanContract(
            borrower_id=borrower_id,
            principal_cents=terms.principal_cents,
            monthly_rate=terms.monthly_rate,
            term_months=terms.term_months,
            start_date=terms.start_date,
            status=ContractStatus.ACTIVE.value,
        )
        self.db.add(db_contract)
        self.db.flush()  # Get ID without committing

        for entry in entries:
            self.db.add(
                ScheduleEntryRow(
                    contract_id=db_contract.id,
                    sequence=entry.sequence,
                    due_date=entry.due_date,
                    principal_cents=entry.principal_cents,
                    interest_cents=entry.interest_cents,
                    total_due_cents=entry.total_due_cents,
                    status=entry.status.value,
                    paid_amount_cents=entry.paid_amount_cents,
                )
            )
        self.db.flush()

        return _to_contract(db_contract)

    def get_contract(self, contract_id: uuid.UUID) -> Optional[Contract]:
        """Fetch a contract, or None when it does not exist"""
        row = self.db.query(LoanContract).filter(LoanContract.id == contract_id).populate_existing().first()
        return _to_contract(row) if row else None

    def list_contracts(self, statuses: Iterable[ContractStatus]) -> List[Contract]:
        """Fetch contracts in the given statuses"""
        rows = (
            self.db.query(LoanContract)
            .filter(LoanContract.status.in_([s.value for s in statuses]))
            .order_by(LoanContract.created_at)
            .all()
        )
        return [_to_contract(row) for row in rows]

    def get_schedule(self, contract_id: uuid.UUID) -> List[PaymentScheduleEntry]:
        """Fetch a contract's schedule ordered by sequence, always re-read from the store"""
        rows = (
            self.db.query(ScheduleEntryRow)
            .filter(ScheduleEntryRow.contract_id == contract_id)
            .order_by(ScheduleEntryRow.sequence)
            .options(selectinload(ScheduleEntryRow.bindings))
            .populate_existing()
            .all()
        )
        return [_to_entry(row) for row in rows]

    def compare_and_bind_entry(
        self,
        contract_id: uuid.UUID,
        plan: BindPlan,
        slip: SlipRecord,
        result: Matched,
    ) -> None:
        """
        Atomically apply a slip to a schedule entry.

        The update only applies while the entry still carries expected_version
        and is still open; the version is incremented on success. The binding
        row is unique per (contract, transaction id).

        Raises:
            BindConflictError: entry changed since it was read
            DuplicateSubmissionError: transaction id already bound on this contract
        """
        updated = (
            self.db.query(ScheduleEntryRow)
            .filter(
                ScheduleEntryRow.id == plan.entry_id,
                ScheduleEntryRow.contract_id == contract_id,
                ScheduleEntryRow.version == plan.expected_version,
                ScheduleEntryRow.status.in_([s.value for s in OPEN_STATUSES]),
            )
            .update(
                {
                    ScheduleEntryRow.status: plan.new_status.value,
                    ScheduleEntryRow.paid_amount_cents: plan.new_paid_amount_cents,
                    ScheduleEntryRow.paid_date: plan.paid_date,
                    ScheduleEntryRow.version: ScheduleEntryRow.version + 1,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise BindConflictError(f"Entry {plan.entry_id} no longer at version {plan.expected_version}")

        self.db.add(
            SlipBinding(
                contract_id=contract_id,
                entry_id=plan.entry_id,
                transaction_id=slip.transaction_id,
                amount_cents=plan.applied_cents,
                transaction_at=slip.transaction_at,
                payer_reference=slip.payer_reference,
                payee_reference=slip.payee_reference,
                confidence=result.confidence,
                rule=result.rule,
            )
        )
        try:
            self.db.flush()
        except IntegrityError as e:
            raise DuplicateSubmissionError(
                f"Transaction {slip.transaction_id} already bound on contract {contract_id}"
            ) from e

    def mark_overdue(self, entry_ids: List[uuid.UUID]) -> int:
        """Persist PENDING → OVERDUE for the given entries; returns rows changed"""
        if not entry_ids:
            return 0
        return (
            self.db.query(ScheduleEntryRow)
            .filter(
                ScheduleEntryRow.id.in_(entry_ids),
                ScheduleEntryRow.status == EntryStatus.PENDING.value,
            )
            .update(
                {
                    ScheduleEntryRow.status: EntryStatus.OVERDUE.value,
                    ScheduleEntryRow.version: ScheduleEntryRow.version + 1,
                },
                synchronize_session=False,
            )
        )

    def update_contract_status(self, contract_id: uuid.UUID, status: ContractStatus) -> None:
        """Set a contract's status"""
        self.db.query(LoanContract).filter(LoanContract.id == contract_id).update(
            {LoanContract.status: status.value},
            synchronize_session=False,
        )
