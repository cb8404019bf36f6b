"""Unit tests for the slip OCR client"""

import json
import pytest
import httpx
from datetime import datetime, timedelta, timezone
from loan_gateway.domain.exceptions import SlipExtractionError, ProviderError
from loan_gateway.infrastructure.clients.slip_ocr import SlipOcrClient, parse_slip_response

OK_BODY = (
    '{"success": true, "data": {"transRef": "016059102938ABC", "amount": 1240.00,'
    ' "dateTime": "2024-02-28T10:15:00+07:00",'
    ' "sender": {"name": "SOMCHAI J."}, "receiver": {"name": "LOAN CO LTD"}}}'
)


def _client(handler, max_retries=2) -> SlipOcrClient:
    return SlipOcrClient(
        base_url="https://ocr.test/v1",
        api_key="test-key",
        max_retries=max_retries,
        backoff_base=0.0,
        transport=httpx.MockTransport(handler),
    )


async def test_extract_success():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=OK_BODY)

    slip = await _client(handler).extract("data:image/jpeg;base64,QUJDRA==")

    assert slip.transaction_id == "016059102938ABC"
    assert slip.amount_cents == 124_000
    assert slip.transaction_at == datetime(2024, 2, 28, 10, 15, tzinfo=timezone(timedelta(hours=7)))
    assert slip.payer_reference == "SOMCHAI J."
    assert slip.payee_reference == "LOAN CO LTD"

    assert len(seen) == 1
    assert str(seen[0].url) == "https://ocr.test/v1/verify"
    assert seen[0].headers["Authorization"] == "Bearer test-key"
    assert json.loads(seen[0].content) == {"image": "QUJDRA=="}


async def test_extract_retries_server_errors():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502, text="bad gateway")
        return httpx.Response(200, text=OK_BODY)

    slip = await _client(handler, max_retries=2).extract("QUJDRA==")

    assert slip.amount_cents == 124_000
    assert len(calls) == 3


async def test_extract_retries_timeouts_then_gives_up():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(SlipExtractionError) as exc:
        await _client(handler, max_retries=2).extract("QUJDRA==")

    assert len(calls) == 3
    assert "unavailable" in exc.value.reason


async def test_extract_client_error_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"message": "bad image"})

    with pytest.raises(SlipExtractionError):
        await _client(handler).extract("QUJDRA==")

    assert len(calls) == 1


async def test_extract_without_api_key_makes_no_call():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, text=OK_BODY)

    client = SlipOcrClient(api_key="", transport=httpx.MockTransport(handler))

    with pytest.raises(SlipExtractionError) as exc:
        await client.extract("QUJDRA==")

    assert "not configured" in exc.value.reason
    assert calls == []


async def test_extract_invalid_json():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(SlipExtractionError):
        await _client(handler).extract("QUJDRA==")


def test_parse_provider_failure_message():
    with pytest.raises(SlipExtractionError) as exc:
        parse_slip_response({"success": False, "message": "Slip not found"})
    assert exc.value.reason == "Slip not found"


def test_parse_date_and_time_fields_and_bank_fallback():
    slip = parse_slip_response(
        {
            "success": True,
            "data": {
                "ref": "REF-42",
                "amount": "500.00",
                "date": "2024-03-20",
                "time": "08:30:00",
                "sendingBank": "KBANK",
                "receivingBank": "SCB",
            },
        }
    )

    assert slip.transaction_id == "REF-42"
    assert slip.amount_cents == 50_000
    assert slip.transaction_at == datetime(2024, 3, 20, 8, 30)
    assert slip.payer_reference == "KBANK"
    assert slip.payee_reference == "SCB"


@pytest.mark.parametrize(
    "data",
    [
        {"amount": "1240.00", "dateTime": "2024-02-28T10:15:00"},  # No transaction reference
        {"transRef": "T1", "dateTime": "2024-02-28T10:15:00"},  # No amount
        {"transRef": "T1", "amount": "12.345", "dateTime": "2024-02-28T10:15:00"},  # Sub-cent amount
        {"transRef": "T1", "amount": "0", "dateTime": "2024-02-28T10:15:00"},
        {"transRef": "T1", "amount": "1240.00"},  # No date
        {"transRef": "T1", "amount": "1240.00", "dateTime": "yesterday"},
    ],
)
def test_parse_rejects_incomplete_records(data):
    with pytest.raises(SlipExtractionError):
        parse_slip_response({"success": True, "data": data})


def test_extraction_error_is_provider_error():
    assert issubclass(SlipExtractionError, ProviderError)


def test_parse_utc_designator_timestamp():
    slip = parse_slip_response(
        {
            "success": True,
            "data": {"transRef": "T1", "amount": "1240.00", "dateTime": "2024-02-28T03:15:00Z"},
        }
    )

    assert slip.transaction_at == datetime(2024, 2, 28, 3, 15, tzinfo=timezone.utc)
    assert slip.transaction_date.isoformat() == "2024-02-28"
