"""GET /v1/portfolio/aging - outstanding balances by aging bucket"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query

from loan_gateway.api.v1.schemas import BucketSchema, PortfolioAgingResponse
from loan_gateway.api.dependencies import get_gateway
from loan_gateway.services.reconciliation import ReconciliationGateway

router = APIRouter()


@router.get("/portfolio/aging", response_model=PortfolioAgingResponse)
def get_portfolio_aging(
    as_of: Optional[date] = Query(None, description="Classification date, defaults to today"),
    gateway: ReconciliationGateway = Depends(get_gateway),
):
    """Count and outstanding amount of open contracts in each aging bucket"""
    report = gateway.get_portfolio_aging(as_of or date.today())

    return PortfolioAgingResponse(
        as_of=report.as_of,
        buckets={
            bucket.value: BucketSchema(count=totals.count, amount_cents=totals.amount_cents)
            for bucket, totals in report.buckets.items()
        },
    )
