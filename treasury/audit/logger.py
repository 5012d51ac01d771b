"""
Audit Logger

DESIGN DECISION: Every significant ledger action is logged.
This provides:
1. Traceability of what changed the ledger and when
2. Debugging capability when a storage write or an import fails
3. A readable history of refused operations

The audit logger:
- Is synchronous: ledger mutations are synchronous and logging is cheap
- Keeps the most recent events in memory; nothing is persisted
"""

from collections import deque
from typing import Optional

import structlog

from treasury.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


DEFAULT_TRAIL_SIZE = 500


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (JSON lines through structlog)
    2. A bounded in-memory trail, newest last
    """

    def __init__(self, trail_size: int = DEFAULT_TRAIL_SIZE):
        self._trail: deque[AuditEvent] = deque(maxlen=trail_size)
        self._logger = structlog.get_logger()

    def log(self, event: AuditEvent) -> None:
        """Log an audit event locally and append it to the trail."""
        self._trail.append(event)
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def recent_events(
        self,
        limit: int = 100,
        event_type: Optional[AuditEventType] = None,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = [
            e for e in reversed(self._trail)
            if event_type is None or e.event_type == event_type
        ]
        return events[:limit]

    def events_for_entity(self, entity_id: str) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        return [e for e in self._trail if e.entity_id == entity_id]

    def log_ledger_change(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        description: str,
        **details,
    ) -> None:
        self.log(
            AuditEventBuilder.ledger_change(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
                details=details,
            )
        )

    def log_refusal(
        self,
        operation: str,
        status: str,
        entity_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.mutation_refused(operation, status, entity_id))

    def log_storage_failure(
        self,
        key: str,
        error_message: str,
        write: bool = True,
    ) -> None:
        self.log(AuditEventBuilder.storage_failed(key, error_message, write=write))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
    ) -> None:
        """Log external service failure."""
        self.log(AuditEventBuilder.external_service_error(service, error_message))
