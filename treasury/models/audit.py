"""
Audit Models for Treasury Ledger

Every significant ledger action is described by an audit event.
This provides:
1. Traceability of what changed the ledger and when
2. Debugging information when a storage write or import fails
3. A record of refused operations (archive mode, archived records)

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
They are not tamper-resistant: a single trusted operator runs the ledger.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each ledger operation has its own event type.
    """
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"

    # Members
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_DELETED = "member_deleted"
    REGISTRATION_REGULARIZED = "registration_regularized"
    DUES_TOGGLED = "dues_toggled"

    # Activities
    ACTIVITY_ADDED = "activity_added"
    ACTIVITY_UPDATED = "activity_updated"
    ACTIVITY_DELETED = "activity_deleted"
    MEMBER_ENROLLED = "member_enrolled"
    MEMBER_UNENROLLED = "member_unenrolled"

    # Taxonomy and preferences
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    SETTINGS_UPDATED = "settings_updated"
    DATA_RESET = "data_reset"

    # Fiscal year and archive
    FISCAL_YEAR_CLOSED = "fiscal_year_closed"
    ARCHIVE_MODE_ENTERED = "archive_mode_entered"
    ARCHIVE_MODE_EXITED = "archive_mode_exited"

    # Files
    BACKUP_EXPORTED = "backup_exported"
    IMPORT_APPLIED = "import_applied"
    IMPORT_REJECTED = "import_rejected"

    # Refusals
    MUTATION_REFUSED = "mutation_refused"

    # Advisor
    ADVISOR_QUESTION = "advisor_question"

    # System events
    STORAGE_READ_FAILED = "storage_read_failed"
    STORAGE_WRITE_FAILED = "storage_write_failed"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'member', 'archive')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.ledger_change(AuditEventType.MEMBER_ADDED, "member", member_id, "...")
        event = AuditEventBuilder.fiscal_year_closed(balance, carry_over_id, archived_count)
    """

    @staticmethod
    def ledger_change(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def mutation_refused(
        operation: str,
        status: str,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REFUSED,
            severity=AuditSeverity.DEBUG,
            entity_id=entity_id,
            description=f"{operation} refused: {status}",
            details={
                "operation": operation,
                "status": status,
            },
            is_user_action=True,
        )

    @staticmethod
    def fiscal_year_closed(
        balance: int,
        carry_over_id: str,
        archived_transactions: int,
        archived_activities: int,
        overwrote_archive: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FISCAL_YEAR_CLOSED,
            severity=AuditSeverity.WARNING if overwrote_archive else AuditSeverity.INFO,
            entity_type="archive",
            entity_id=carry_over_id,
            description=f"Fiscal year closed with balance {balance} FCFA",
            details={
                "balance": balance,
                "archived_transactions": archived_transactions,
                "archived_activities": archived_activities,
                "overwrote_archive": overwrote_archive,
            },
            is_user_action=True,
        )

    @staticmethod
    def archive_mode_changed(entered: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.ARCHIVE_MODE_ENTERED
                if entered
                else AuditEventType.ARCHIVE_MODE_EXITED
            ),
            entity_type="archive",
            description=(
                "Historical read-only view opened"
                if entered
                else "Returned to the current fiscal year"
            ),
            is_user_action=True,
        )

    @staticmethod
    def import_applied(
        file_format: str,
        transactions: int,
        members: int,
        has_archive: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_APPLIED,
            entity_type="file",
            description=f"Imported {file_format} file",
            details={
                "format": file_format,
                "transactions": transactions,
                "members": members,
                "has_archive": has_archive,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="file",
            description="Imported file was rejected",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def storage_failed(
        key: str,
        error_message: str,
        write: bool = True,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.STORAGE_WRITE_FAILED
                if write
                else AuditEventType.STORAGE_READ_FAILED
            ),
            severity=AuditSeverity.ERROR if write else AuditSeverity.WARNING,
            entity_type="blob",
            entity_id=key,
            description=f"Storage {'write' if write else 'read'} failed for '{key}'",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
        )
