"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "payment-gateway"


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


def log_decision(
    request_id: str,
    customer_id: str,
    allowed: bool,
    stage: Optional[str],
    code: Optional[str],
    flags: Tuple[str, ...],
    duration_ms: float,
) -> None:
    """Log structured decision outcome for analysis (never includes the PIN)"""
    logging.info(
        "Payment decision completed",
        extra={
            "request_id": request_id,
            "customer_id": customer_id,
            "step": "decision_complete",
            "outcome": "allow" if allowed else "deny",
            "deny_stage": stage,
            "deny_code": code,
            "audit_flags": list(flags),
            "duration_ms": duration_ms,
        },
    )
