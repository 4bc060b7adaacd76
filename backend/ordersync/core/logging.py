"""
Structured JSON logging
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter carrying timestamp, level, logger and code location"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name

        log_record['process'] = {
            'id': record.process,
            'name': record.processName
        }

        log_record['location'] = {
            'file': record.pathname,
            'line': record.lineno,
            'function': record.funcName
        }


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure the root logger

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_logs: JSON lines when True, plain text otherwise
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if json_logs:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    ip_address: Optional[str] = None
):
    """Log one HTTP request handled by the API"""
    logger.info(
        "HTTP Request",
        extra={
            'http': {
                'method': method,
                'path': path,
                'status_code': status_code,
                'duration_ms': duration_ms
            },
            'ip_address': ip_address
        }
    )


def log_api_call(
    logger: logging.Logger,
    provider: str,
    endpoint: str,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
):
    """
    Log an outbound call to a provider API

    Args:
        logger: Logger to use
        provider: uber_eats, doordash
        endpoint: URL that was called
        status_code: HTTP status, if a response arrived
        duration_ms: Round-trip time
        error: Failure description, logged at ERROR level
    """
    level = logging.ERROR if error else logging.INFO

    logger.log(
        level,
        f"API Call to {provider}",
        extra={
            'api_call': {
                'provider': provider,
                'endpoint': endpoint,
                'status_code': status_code,
                'duration_ms': duration_ms,
                'error': error
            }
        }
    )


def log_security_event(
    logger: logging.Logger,
    event_type: str,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    severity: str = "INFO"
):
    """
    Log a security-relevant event

    Args:
        logger: Logger to use
        event_type: signature_rejected, authorization_denied, signature_bypassed...
        user_id: Caller, when known
        ip_address: Client address, when known
        details: Extra context (never secrets)
        severity: INFO, WARNING, ERROR or CRITICAL
    """
    level = getattr(logging, severity.upper(), logging.INFO)

    logger.log(
        level,
        f"Security Event: {event_type}",
        extra={
            'security': {
                'event_type': event_type,
                'user_id': user_id,
                'ip_address': ip_address,
                'details': details or {}
            }
        }
    )
