"""
Audit Logger

Every ledger mutation, schema migration and failure is logged as a
structured event. This gives:
1. Traceability of every balance change
2. Debugging capability when a unit of work is rolled back
3. A record of which migrations ran on which startup

The audit logger only writes to the local structured log. Logging
failures never break the ledger operation that triggered them.
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from pocket_ledger.config import LoggingSettings, get_settings
from pocket_ledger.models.audit import AuditEvent, AuditSeverity


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure structlog (and the stdlib root logger it renders through).

    Called once at process start by ``create_app_components``.
    """
    settings = settings or get_settings().logging

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.level),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Routes each event to the structured log at the level matching its
    severity.
    """

    def __init__(self, logger_name: str = "pocket_ledger.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except (OSError, ValueError) as e:
            # A closed or broken log stream must not undo a committed write
            print(f"WARNING: Failed to write audit event {event.event_id}: {e}", file=sys.stderr)
            return False

        return True


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step user action and pass it through
    all subsequent operations.
    """
    return uuid4()
