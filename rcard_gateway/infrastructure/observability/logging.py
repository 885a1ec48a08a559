"""Structured JSON logging and the audit event sink"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from rcard_gateway.config import settings

audit_logger = logging.getLogger("rcard.audit")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
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


def emit_event(category: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
    """
    Best-effort audit event.

    Never raises: a broken sink must not fail the operation that emitted it.
    """
    try:
        audit_logger.info(
            message,
            extra={"category": category, "context": dict(context or {})},
        )
    except Exception:  # noqa: BLE001
        logging.getLogger(__name__).debug("Audit event dropped", exc_info=True)
