"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loan_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loan_gateway.api.v1 import contracts, slips, portfolio
from loan_gateway.infrastructure.observability.logging import setup_logging
from loan_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Loan Reconciliation Gateway",
        description="Installment schedules, aging and payment slip reconciliation",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(contracts.router, prefix="/v1", tags=["contracts"])
    app.include_router(slips.router, prefix="/v1", tags=["slips"])
    app.include_router(portfolio.router, prefix="/v1", tags=["portfolio"])

    return app


app = create_app()
