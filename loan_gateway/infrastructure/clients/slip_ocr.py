"""Slip OCR provider client with exponential backoff retry logic"""

import asyncio
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict
import httpx
from loan_gateway.config import settings
from loan_gateway.domain.exceptions import SlipExtractionError
from loan_gateway.domain.models import SlipRecord
from loan_gateway.domain.slip_validation import strip_data_url
from loan_gateway.infrastructure.observability.metrics import ocr_latency_histogram, ocr_failure_counter
from loan_gateway.utils.money import to_cents

logger = logging.getLogger(__name__)


def _party_reference(body: Dict[str, Any], party_key: str, bank_key: str) -> str:
    party = body.get(party_key)
    if isinstance(party, dict):
        name = party.get("name") or party.get("displayName")
        if name:
            return str(name)
    return str(body.get(bank_key) or "")


def _parse_timestamp(body: Dict[str, Any]) -> datetime:
    if body.get("dateTime"):
        raw = str(body["dateTime"])
        # fromisoformat only accepts a "Z" suffix from Python 3.11
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return datetime.fromisoformat(raw)
    if body.get("date"):
        return datetime.fromisoformat(f"{body['date']}T{body.get('time') or '00:00:00'}")
    raise ValueError("no transaction date")


def parse_slip_response(data: Any) -> SlipRecord:
    """
    Normalize a provider response into a SlipRecord.

    Expected shape:
        {"success": true, "data": {"transRef": "...", "amount": "1240.00",
         "dateTime": "2024-02-28T10:15:00+07:00", "sender": {"name": ...},
         "receiver": {"name": ...}}}

    Raises:
        SlipExtractionError: provider reported failure or a required field is missing/invalid
    """
    if not isinstance(data, dict):
        raise SlipExtractionError("Malformed OCR response")
    if not data.get("success") or not isinstance(data.get("data"), dict):
        raise SlipExtractionError(str(data.get("message") or "Failed to read slip"))

    body = data["data"]

    transaction_id = body.get("transRef") or body.get("ref")
    if not transaction_id:
        raise SlipExtractionError("Slip has no transaction reference")

    try:
        amount_cents = to_cents(body["amount"])
        transaction_at = _parse_timestamp(body)
    except (KeyError, ValueError, TypeError) as e:
        raise SlipExtractionError(f"Invalid slip data from OCR provider: {e}") from e

    if amount_cents <= 0:
        raise SlipExtractionError("Slip amount must be positive")

    return SlipRecord(
        transaction_id=str(transaction_id),
        amount_cents=amount_cents,
        transaction_at=transaction_at,
        payer_reference=_party_reference(body, "sender", "sendingBank"),
        payee_reference=_party_reference(body, "receiver", "receivingBank"),
    )


class SlipOcrClient:
    """Client for the external payment-slip OCR API"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.ocr_api_base
        self.api_key = api_key if api_key is not None else settings.ocr_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.ocr_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.ocr_backoff_base
        self.transport = transport

    async def extract(self, image_b64: str) -> SlipRecord:
        """
        Send a slip image to the OCR provider and return the canonical record.

        Retry strategy:
        - Exponential backoff: base, 2×base, 4×base ... (base × 2^attempt)
        - Retries on timeouts, network failures and 5xx responses
        - 4xx responses and unreadable slips fail immediately

        Raises:
            SlipExtractionError: provider unavailable after retries, rejected the slip,
                or returned malformed data
        """
        if not self.api_key:
            raise SlipExtractionError("OCR provider API key not configured")

        data = await self._post_with_retry({"image": strip_data_url(image_b64)})
        return parse_slip_response(data)

    async def _post_with_retry(self, payload: Dict[str, Any]) -> Any:
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    with ocr_latency_histogram.time():
                        response = await client.post(
                            f"{self.base_url}/verify",
                            json=payload,
                            headers={"Authorization": f"Bearer {self.api_key}"},
                        )
                        response.raise_for_status()
                    # Keep amounts exact
                    return json.loads(response.text, parse_float=Decimal)

                except httpx.HTTPStatusError as e:
                    ocr_failure_counter.inc()
                    if e.response.status_code < 500:
                        raise SlipExtractionError(f"OCR provider error: {e.response.status_code}") from e
                    failure: Exception = e

                except (httpx.TimeoutException, httpx.RequestError) as e:
                    ocr_failure_counter.inc()
                    failure = e

                except ValueError as e:
                    raise SlipExtractionError("OCR provider returned invalid JSON") from e

                attempt += 1
                if attempt > self.max_retries:
                    raise SlipExtractionError(
                        f"OCR provider unavailable after {attempt} attempts"
                    ) from failure

                backoff = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(
                    f"OCR call failed, retrying in {backoff}s: {failure!r}",
                    extra={"attempt": attempt},
                )
                await asyncio.sleep(backoff)
