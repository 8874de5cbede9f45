"""
DRD Portal - Centralized Logging Configuration
Supports both development (plain text) and production (JSON structured) logging
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from drd_portal.core.config import settings


# Context variables for request tracing
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')
submission_id_var: ContextVar[str] = ContextVar('submission_id', default='')


def get_request_id() -> str:
    """Get current request ID from context"""
    return request_id_var.get() or ''


def set_request_id(request_id: str) -> None:
    """Set request ID in context"""
    request_id_var.set(request_id)


def get_user_id() -> str:
    """Get current user ID from context"""
    return user_id_var.get() or ''


def set_user_id(user_id: str) -> None:
    """Set user ID in context"""
    user_id_var.set(user_id)


def get_submission_id() -> str:
    """Get current submission ID from context"""
    return submission_id_var.get() or ''


def set_submission_id(submission_id: str) -> None:
    """Set submission ID in context"""
    submission_id_var.set(submission_id)


def generate_request_id() -> str:
    """Generate a unique request ID"""
    return str(uuid.uuid4())[:8]


_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName',
    # Set by ContextualFormatter when both formatters share a record
    'request_id', 'user_id', 'workflow_context',
}

# Extras describing the submission workflow, grouped under "workflow" in JSON output
WORKFLOW_KEYS = (
    'submission_id', 'actor_id', 'workflow_event', 'from_status', 'to_status',
    'rejection_reason', 'suggestion_event', 'field_name', 'review_category',
)


def workflow_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Workflow extras on the record, with the submission taken from context if absent"""
    fields = {key: getattr(record, key) for key in WORKFLOW_KEYS if getattr(record, key, None) is not None}
    submission_id = get_submission_id()
    if submission_id:
        fields.setdefault('submission_id', submission_id)
    return fields


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production

    Submission, actor and transition fields are nested under "workflow" so
    aggregators can index one submission's trail without parsing messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        user_id = get_user_id()
        if user_id:
            log_data["user_id"] = user_id

        workflow = workflow_fields(record)
        if workflow:
            log_data["workflow"] = workflow

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info) if record.exc_info[0] else None
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS or key in WORKFLOW_KEYS or key.startswith('_'):
                continue
            log_data.setdefault(key, value)

        return json.dumps(log_data, default=str)


class ContextualFormatter(logging.Formatter):
    """
    Readable development output

    Adds `request_id`, `user_id` and a compact `workflow_context` such as
    "3f2a... submit draft->submitted" to the record for the format string.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.user_id = get_user_id() or '-'

        workflow = workflow_fields(record)
        parts = [str(workflow['submission_id'])[:8]] if 'submission_id' in workflow else []
        if 'workflow_event' in workflow:
            parts.append(str(workflow['workflow_event']))
        if 'to_status' in workflow:
            parts.append(f"{workflow.get('from_status') or '-'}->{workflow['to_status']}")
        record.workflow_context = ' '.join(parts) or '-'

        return super().format(record)


class DrdLogger(logging.Logger):
    """
    Custom logger with convenience methods for workflow events
    """

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        """Log HTTP request details"""
        self.info(
            f"HTTP {method} {path} - {status_code} ({duration_ms:.2f}ms)",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": duration_ms,
                **kwargs
            }
        )

    def log_transition(self, submission_id: str, event: str, from_status: Optional[str],
                       to_status: str, actor_id: str, **kwargs) -> None:
        """Log a committed status transition"""
        self.info(
            f"Submission {submission_id}: {event} {from_status or '-'} -> {to_status} by {actor_id}",
            extra={
                "event_type": "transition",
                "submission_id": submission_id,
                "workflow_event": event,
                "from_status": from_status,
                "to_status": to_status,
                "actor_id": actor_id,
                **kwargs
            }
        )

    def log_transition_rejected(self, submission_id: str, event: str, reason: str,
                                actor_id: str, **kwargs) -> None:
        """Log a transition that failed a guard"""
        self.warning(
            f"Submission {submission_id}: {event} rejected ({reason}) for {actor_id}",
            extra={
                "event_type": "transition_rejected",
                "submission_id": submission_id,
                "workflow_event": event,
                "rejection_reason": reason,
                "actor_id": actor_id,
                **kwargs
            }
        )

    def log_suggestion_event(self, submission_id: str, event: str, field_name: str,
                             actor_id: str, **kwargs) -> None:
        """Log suggestion ledger activity"""
        self.info(
            f"Suggestion {event} on {submission_id}.{field_name} by {actor_id}",
            extra={
                "event_type": "suggestion",
                "submission_id": submission_id,
                "suggestion_event": event,
                "field_name": field_name,
                "actor_id": actor_id,
                **kwargs
            }
        )

    def log_incentive_calculation(self, category: str, sub_type: str, total_amount: Any,
                                  total_points: int, participants: int,
                                  authoritative: bool = False, **kwargs) -> None:
        """Log incentive calculation results"""
        level = logging.INFO if authoritative else logging.DEBUG
        self.log(
            level,
            f"Incentive {category}/{sub_type}: total {total_amount}, points {total_points}, "
            f"{participants} participant(s)" + (" [authoritative]" if authoritative else " [preview]"),
            extra={
                "event_type": "incentive",
                "policy_category": category,
                "policy_sub_type": sub_type,
                "total_amount": str(total_amount),
                "total_points": total_points,
                "participants": participants,
                "authoritative": authoritative,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Log error with full context"""
        self.error(
            f"Error in {context}: {type(error).__name__}: {str(error)}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_context": context,
                **kwargs
            }
        )


def _file_handler(formatter: logging.Formatter, backup_count: int) -> RotatingFileHandler:
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        log_file,
        maxBytes=10485760,  # 10MB
        backupCount=backup_count
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> DrdLogger:
    """Setup logging configuration based on environment"""

    logging.setLoggerClass(DrdLogger)

    logger = logging.getLogger("drd_portal")
    logger.__class__ = DrdLogger  # Ensure it's our custom class
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logger.handlers.clear()

    is_production = settings.is_production

    if is_production:
        console_formatter = file_formatter = JSONFormatter()
        backup_count = 10
    else:
        console_formatter = ContextualFormatter("%(levelname)-8s | [%(workflow_context)s] %(message)s")
        file_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | "
            "[%(request_id)s] [%(user_id)s] [%(workflow_context)s] | "
            "%(funcName)s:%(lineno)d | %(message)s"
        )
        backup_count = 5

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        logger.addHandler(_file_handler(file_formatter, backup_count))

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logger.debug(
        "Logging initialized",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "json_logging": is_production
        }
    )

    return logger


logger: DrdLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'get_request_id',
    'set_request_id',
    'get_user_id',
    'set_user_id',
    'get_submission_id',
    'set_submission_id',
    'generate_request_id',
    'workflow_fields',
    'JSONFormatter',
    'ContextualFormatter',
    'DrdLogger',
]
