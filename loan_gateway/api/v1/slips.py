"""Payment slip endpoints: OCR verification and reviewer binding"""

import time
import uuid
import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from loan_gateway.api.v1.schemas import ManualBindRequest, VerifySlipRequest, VerifySlipResponse
from loan_gateway.api.dependencies import get_gateway, get_request_id, parse_contract_id
from loan_gateway.domain.exceptions import (
    ContractNotFoundError,
    ScheduleEntryNotFoundError,
    SlipExtractionError,
    SlipValidationError,
)
from loan_gateway.services.reconciliation import ReconciliationGateway
from loan_gateway.infrastructure.observability.metrics import record_verification
from loan_gateway.infrastructure.observability.logging import log_verification

router = APIRouter()


@router.post("/contracts/{contract_id}/slips/verify", response_model=VerifySlipResponse)
async def verify_slip(
    contract_id: str,
    request_body: VerifySlipRequest,
    request: Request,
    gateway: ReconciliationGateway = Depends(get_gateway),
):
    """
    Verify a payment slip and bind it to a schedule entry.

    Flow:
    1. Look up the contract
    2. Validate the image payload
    3. Extract slip data through the OCR provider
    4. Match against the contract's open installments
    5. Commit the binding (compare-and-set, re-matched on conflict)
    6. Return matched / no_match / ambiguous
    """
    start_time = time.time()
    request_id = get_request_id(request)
    contract_uuid = parse_contract_id(contract_id)

    try:
        result = await gateway.verify_slip(contract_uuid, request_body.image_base64, request_body.mime_type)

    except ContractNotFoundError:
        raise HTTPException(status_code=404, detail="Contract not found")

    except SlipValidationError as e:
        record_verification("rejected")
        logging.warning(f"Slip rejected: {e.reason}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=e.reason)

    except SlipExtractionError as e:
        record_verification("unavailable")
        logging.error(f"Slip extraction failed: {e.reason}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Slip verification unavailable")

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    response = VerifySlipResponse.from_result(result)

    # Record metrics and logs
    duration_ms = (time.time() - start_time) * 1000
    record_verification(response.outcome)
    log_verification(
        request_id,
        contract_id,
        response.outcome,
        duration_ms,
        entry_sequence=response.sequence,
        reason=response.reason,
    )

    return response


@router.post("/contracts/{contract_id}/slips/bind", response_model=VerifySlipResponse)
def bind_slip_manually(
    contract_id: str,
    request_body: ManualBindRequest,
    request: Request,
    gateway: ReconciliationGateway = Depends(get_gateway),
):
    """
    Apply a reviewed slip to the schedule entry chosen by staff.

    Used after verify returned ambiguous or no_match. Duplicate transaction
    ids and settled entries still come back as no_match.
    """
    start_time = time.time()
    request_id = get_request_id(request)
    contract_uuid = parse_contract_id(contract_id)
    try:
        entry_uuid = uuid.UUID(request_body.entry_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid entry ID format")

    try:
        result = gateway.bind_manually(
            contract_uuid, entry_uuid, request_body.to_slip(), reviewer_id=request_body.reviewer_id
        )
    except ContractNotFoundError:
        raise HTTPException(status_code=404, detail="Contract not found")
    except ScheduleEntryNotFoundError:
        raise HTTPException(status_code=404, detail="Schedule entry not found")
    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    response = VerifySlipResponse.from_result(result)

    duration_ms = (time.time() - start_time) * 1000
    record_verification(response.outcome)
    log_verification(
        request_id,
        contract_id,
        response.outcome,
        duration_ms,
        entry_sequence=response.sequence,
        reason=response.reason,
    )

    return response
