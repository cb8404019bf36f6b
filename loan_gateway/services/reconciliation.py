"""Reconciliation gateway - schedules, aging and slip verification over the contract store"""

import logging
import uuid
from datetime import date
from typing import Callable, List, Optional, Tuple
from sqlalchemy.orm import Session
from loan_gateway.config import Settings, settings
from loan_gateway.domain.aging import (
    build_portfolio_report,
    classify,
    derive_contract_status,
    overdue_transitions,
)
from loan_gateway.domain.exceptions import (
    BindConflictError,
    ContractNotFoundError,
    DuplicateSubmissionError,
)
from loan_gateway.domain.matching import DUPLICATE_SUBMISSION, LOST_RACE, match, plan_binding, review_match
from loan_gateway.domain.models import (
    AgingReport,
    Contract,
    ContractStatus,
    ContractTerms,
    Matched,
    MatchResult,
    NoMatch,
    PaymentScheduleEntry,
    PortfolioAgingReport,
    SlipRecord,
)
from loan_gateway.domain.schedule import generate_schedule
from loan_gateway.domain.slip_validation import validate_slip_image
from loan_gateway.infrastructure.clients.slip_ocr import SlipOcrClient
from loan_gateway.infrastructure.database.repositories import ContractRepository
from loan_gateway.infrastructure.observability.metrics import bind_conflict_counter, schedule_generated_counter
from loan_gateway.utils.money import format_cents

logger = logging.getLogger(__name__)


class ReconciliationGateway:
    """Caller-facing operations; the only component that writes schedule state"""

    def __init__(
        self,
        db: Session,
        ocr_client: SlipOcrClient,
        config: Settings = settings,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.repository = ContractRepository(db)
        self.ocr_client = ocr_client
        self.config = config
        self.today = today

    def compute_schedule(self, terms: ContractTerms) -> List[PaymentScheduleEntry]:
        """Preview a schedule without persisting it"""
        return generate_schedule(
            terms.principal_cents, terms.monthly_rate, terms.term_months, terms.start_date
        )

    def create_contract(self, borrower_id: str, terms: ContractTerms) -> Tuple[Contract, List[PaymentScheduleEntry]]:
        """Persist an approved contract and its schedule in one transaction"""
        entries = self.compute_schedule(terms)
        try:
            contract = self.repository.create_contract(borrower_id, terms, entries)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        schedule_generated_counter.inc()
        logger.info(
            "Contract created",
            extra={"contract_id": str(contract.id), "borrower_id": borrower_id, "term_months": terms.term_months},
        )
        return contract, self.repository.get_schedule(contract.id)

    def get_contract(self, contract_id: uuid.UUID) -> Contract:
        contract = self.repository.get_contract(contract_id)
        if contract is None:
            raise ContractNotFoundError(f"Contract {contract_id} not found")
        return contract

    def get_schedule(self, contract_id: uuid.UUID) -> List[PaymentScheduleEntry]:
        self.get_contract(contract_id)
        return self.repository.get_schedule(contract_id)

    def get_aging_summary(self, contract_id: uuid.UUID, as_of: date) -> AgingReport:
        """
        Classify a contract's schedule and persist what the classification implies.

        Persists PENDING → OVERDUE for newly past-due entries and the derived
        contract status (ACTIVE / DEFAULTED / CLOSED). Calling it again with
        the same as_of changes nothing. An as_of later than today is a
        projection: the report is returned and nothing is stored.
        """
        contract = self.get_contract(contract_id)
        schedule = self.repository.get_schedule(contract_id)
        report = classify(schedule, as_of)

        if as_of > self.today():
            return report

        new_status = derive_contract_status(
            contract.status, report.summary, self.config.default_threshold_days
        )
        try:
            changed = self.repository.mark_overdue(overdue_transitions(schedule, report))
            if new_status != contract.status:
                self.repository.update_contract_status(contract_id, new_status)
            if changed or new_status != contract.status:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if new_status != contract.status:
            logger.info(
                f"Contract status {contract.status.value} -> {new_status.value}",
                extra={"contract_id": str(contract_id), "max_days_overdue": report.summary.max_days_overdue},
            )
        return report

    def get_portfolio_aging(self, as_of: date) -> PortfolioAgingReport:
        """Read-only aging of every open contract, grouped by worst bucket"""
        contracts = self.repository.list_contracts([ContractStatus.ACTIVE, ContractStatus.DEFAULTED])
        summaries = (
            classify(self.repository.get_schedule(contract.id), as_of).summary
            for contract in contracts
        )
        return build_portfolio_report(as_of, summaries)

    async def verify_slip(self, contract_id: uuid.UUID, image_b64: str, mime_type: str) -> MatchResult:
        """
        Validate, extract and reconcile a payment slip for a contract.

        Raises:
            ContractNotFoundError: unknown contract
            SlipValidationError: image rejected before extraction
            SlipExtractionError: OCR provider unavailable or slip unreadable
        """
        self.get_contract(contract_id)
        validate_slip_image(
            image_b64,
            mime_type,
            accepted_mime_types=self.config.slip_accepted_mime_types,
            min_bytes=self.config.slip_min_bytes,
            max_bytes=self.config.slip_max_bytes,
        )
        slip = await self.ocr_client.extract(image_b64)
        return self.reconcile_slip(contract_id, slip)

    def reconcile_slip(self, contract_id: uuid.UUID, slip: SlipRecord) -> MatchResult:
        """
        Match a slip against fresh schedule state and commit the binding.

        A lost compare-and-set re-runs matching against refreshed entries,
        at most bind_max_retries times, then gives up with "lost race".
        """
        return self._bind_with_retry(
            contract_id,
            slip,
            lambda schedule: match(slip, schedule, self.config.match_window_days),
        )

    def bind_manually(
        self,
        contract_id: uuid.UUID,
        entry_id: uuid.UUID,
        slip: SlipRecord,
        reviewer_id: Optional[str] = None,
    ) -> MatchResult:
        """
        Bind a reviewed slip to the entry a staff member chose.

        Follow-up for slips the engine returned as ambiguous or unmatched.
        Uses the same duplicate guard and compare-and-set as automatic binding.

        Raises:
            ContractNotFoundError: unknown contract
            ScheduleEntryNotFoundError: entry is not on this contract
        """
        self.get_contract(contract_id)
        result = self._bind_with_retry(
            contract_id,
            slip,
            lambda schedule: review_match(slip, schedule, entry_id),
        )
        logger.info(
            "Manual slip review",
            extra={
                "contract_id": str(contract_id),
                "entry_id": str(entry_id),
                "transaction_id": slip.transaction_id,
                "reviewer_id": reviewer_id,
                "outcome": type(result).__name__,
            },
        )
        return result

    def _bind_with_retry(
        self,
        contract_id: uuid.UUID,
        slip: SlipRecord,
        decide: Callable[[List[PaymentScheduleEntry]], MatchResult],
    ) -> MatchResult:
        for attempt in range(self.config.bind_max_retries + 1):
            schedule = self.repository.get_schedule(contract_id)
            result = decide(schedule)
            if not isinstance(result, Matched):
                return result

            plan = plan_binding(slip, schedule, result)
            try:
                self.repository.compare_and_bind_entry(contract_id, plan, slip, result)
                self._refresh_contract_status(contract_id)
                self.db.commit()
                logger.info(
                    f"Slip {format_cents(plan.applied_cents)} bound to installment #{result.sequence}",
                    extra={
                        "contract_id": str(contract_id),
                        "transaction_id": slip.transaction_id,
                        "rule": result.rule,
                        "entry_status": plan.new_status.value,
                    },
                )
                return result

            except BindConflictError:
                self.db.rollback()
                bind_conflict_counter.inc()
                logger.info(
                    "Lost bind race, re-matching",
                    extra={"contract_id": str(contract_id), "attempt": attempt + 1},
                )

            except DuplicateSubmissionError:
                self.db.rollback()
                return NoMatch(DUPLICATE_SUBMISSION)

        logger.warning(
            "Giving up binding after repeated conflicts",
            extra={"contract_id": str(contract_id), "transaction_id": slip.transaction_id},
        )
        return NoMatch(LOST_RACE)

    def _refresh_contract_status(self, contract_id: uuid.UUID) -> None:
        """Re-derive contract status as of today after a binding, in the same transaction"""
        contract = self.get_contract(contract_id)
        summary = classify(self.repository.get_schedule(contract_id), self.today()).summary
        new_status = derive_contract_status(contract.status, summary, self.config.default_threshold_days)
        if new_status != contract.status:
            self.repository.update_contract_status(contract_id, new_status)
