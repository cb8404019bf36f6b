"""Dependency injection for FastAPI endpoints"""

import uuid
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session
from loan_gateway.infrastructure.clients.slip_ocr import SlipOcrClient
from loan_gateway.infrastructure.database.session import get_db
from loan_gateway.services.reconciliation import ReconciliationGateway


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_ocr_client() -> SlipOcrClient:
    """Provide slip OCR client instance"""
    return SlipOcrClient()


def get_gateway(
    db: Session = Depends(get_db),
    ocr_client: SlipOcrClient = Depends(get_ocr_client),
) -> ReconciliationGateway:
    """Provide reconciliation gateway bound to the request's session"""
    return ReconciliationGateway(db, ocr_client)


def parse_contract_id(contract_id: str) -> uuid.UUID:
    """Path parameter to UUID, 400 when malformed"""
    try:
        return uuid.UUID(contract_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid contract ID format")
