"""Contract, schedule and aging endpoints"""

import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from loan_gateway.api.v1.schemas import (
    AgingResponse,
    ContractResponse,
    ContractTermsRequest,
    CreateContractRequest,
    SchedulePreviewResponse,
    ScheduleEntrySchema,
)
from loan_gateway.api.dependencies import get_gateway, parse_contract_id
from loan_gateway.domain.exceptions import ContractNotFoundError, InputError
from loan_gateway.domain.schedule import calculate_loan_summary, generate_schedule
from loan_gateway.services.reconciliation import ReconciliationGateway

router = APIRouter()


@router.post("/schedule/preview", response_model=SchedulePreviewResponse)
def preview_schedule(request_body: ContractTermsRequest):
    """
    Quote a loan: full schedule plus monthly payment and totals.

    Nothing is persisted.
    """
    terms = request_body.to_terms()
    try:
        entries = generate_schedule(
            terms.principal_cents, terms.monthly_rate, terms.term_months, terms.start_date
        )
        summary = calculate_loan_summary(terms)
    except InputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SchedulePreviewResponse(
        monthly_payment_cents=summary.monthly_payment_cents,
        total_interest_cents=summary.total_interest_cents,
        total_payment_cents=summary.total_payment_cents,
        end_date=summary.end_date,
        entries=[ScheduleEntrySchema.from_entry(e) for e in entries],
    )


@router.post("/contracts", response_model=ContractResponse, status_code=201)
def create_contract(
    request_body: CreateContractRequest,
    gateway: ReconciliationGateway = Depends(get_gateway),
):
    """Create an approved contract together with its payment schedule"""
    try:
        contract, entries = gateway.create_contract(request_body.borrower_id, request_body.to_terms())
    except InputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ContractResponse.from_domain(contract, entries)


@router.get("/contracts/{contract_id}", response_model=ContractResponse)
def get_contract(contract_id: str, gateway: ReconciliationGateway = Depends(get_gateway)):
    """Retrieve a contract with its current schedule"""
    contract_uuid = parse_contract_id(contract_id)
    try:
        contract = gateway.get_contract(contract_uuid)
        entries = gateway.get_schedule(contract_uuid)
    except ContractNotFoundError:
        raise HTTPException(status_code=404, detail="Contract not found")

    return ContractResponse.from_domain(contract, entries)


@router.get("/contracts/{contract_id}/aging", response_model=AgingResponse)
def get_contract_aging(
    contract_id: str,
    as_of: Optional[date] = Query(None, description="Classification date, defaults to today"),
    gateway: ReconciliationGateway = Depends(get_gateway),
):
    """
    Overdue overlay and aging summary for a contract.

    Newly overdue installments and the resulting contract status are persisted.
    """
    contract_uuid = parse_contract_id(contract_id)
    try:
        report = gateway.get_aging_summary(contract_uuid, as_of or date.today())
    except ContractNotFoundError:
        raise HTTPException(status_code=404, detail="Contract not found")
    except Exception as e:
        logging.error(f"Aging classification failed: {e}", extra={"contract_id": contract_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return AgingResponse.from_report(str(contract_uuid), report)
