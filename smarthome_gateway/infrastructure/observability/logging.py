"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger.json import JsonFormatter

from smarthome_gateway.config import settings


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


def log_operation(
    request_id: str,
    operation: str,
    outcome: str,
    duration_ms: float,
) -> None:
    """Log structured outcome of a ledger operation"""
    logging.info(
        "Operation completed",
        extra={
            "request_id": request_id,
            "operation": operation,
            "step": "operation_complete",
            "outcome": outcome,
            "duration_ms": duration_ms,
        },
    )


def log_cascade(tower_id: str, floor: int, homes_scanned: int, homes_updated: int) -> None:
    """Log the staged cascade that accompanies a verified floor"""
    logging.info(
        "Floor verification cascaded",
        extra={
            "tower_id": tower_id,
            "floor": floor,
            "step": "cascade_commit",
            "homes_scanned": homes_scanned,
            "homes_updated": homes_updated,
        },
    )
