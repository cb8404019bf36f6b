"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger.json import JsonFormatter
from loan_gateway.config import settings


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_verification(
    request_id: str,
    contract_id: str,
    outcome: str,
    duration_ms: float,
    entry_sequence: Optional[int] = None,
    reason: Optional[str] = None,
) -> None:
    """Log structured slip verification outcome for analysis"""
    logging.info(
        "Slip verification completed",
        extra={
            "request_id": request_id,
            "contract_id": contract_id,
            "step": "verification_complete",
            "outcome": outcome,
            "entry_sequence": entry_sequence,
            "reason": reason,
            "duration_ms": duration_ms,
        },
    )
