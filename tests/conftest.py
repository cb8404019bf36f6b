"""Pytest fixtures for testing"""

import base64
import io
import pytest
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from loan_gateway.api.main import create_app
from loan_gateway.config import Settings
from loan_gateway.infrastructure.clients.slip_ocr import SlipOcrClient
from loan_gateway.infrastructure.database.models import Base
from loan_gateway.infrastructure.database.session import get_db
from loan_gateway.domain.models import ContractTerms, SlipRecord
from loan_gateway.services.reconciliation import ReconciliationGateway


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Clock for gateway tests: installments 1-4 of the standard loan are past due
TODAY = date(2024, 6, 1)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with explicit matching/retry parameters"""
    return Settings(
        match_window_days=7,
        bind_max_retries=3,
        default_threshold_days=90,
        ocr_api_key="test-key",
        ocr_backoff_base=0.0,
    )


@pytest.fixture
def gateway(db: Session, test_settings: Settings) -> ReconciliationGateway:
    """Reconciliation gateway over the test database, with the clock fixed at TODAY"""
    ocr_client = SlipOcrClient(api_key="test-key", max_retries=0, backoff_base=0.0)
    return ReconciliationGateway(db, ocr_client, config=test_settings, today=lambda: TODAY)


@pytest.fixture
def loan_terms() -> ContractTerms:
    """12,000.00 at 2% per month over 12 months, starting on a month end"""
    return ContractTerms(
        principal_cents=1_200_000,
        monthly_rate=Decimal("0.02"),
        term_months=12,
        start_date=date(2024, 1, 31),
    )


@pytest.fixture
def make_slip() -> Callable[..., SlipRecord]:
    """Factory for OCR-extracted slips"""

    def _make(
        amount_cents: int,
        on: date = date(2024, 2, 28),
        transaction_id: str = "TXN-0001",
    ) -> SlipRecord:
        return SlipRecord(
            transaction_id=transaction_id,
            amount_cents=amount_cents,
            transaction_at=datetime.combine(on, time(10, 15)),
            payer_reference="SOMCHAI J.",
            payee_reference="LOAN CO LTD",
        )

    return _make


def encode_image(image_format: str, size: tuple = (120, 80)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(240, 240, 240)).save(buffer, format=image_format)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def jpeg_slip_b64() -> str:
    """Small but valid JPEG slip image, base64 encoded"""
    return encode_image("JPEG")


@pytest.fixture
def png_slip_b64() -> str:
    return encode_image("PNG")


@pytest.fixture
def gif_slip_b64() -> str:
    return encode_image("GIF")
