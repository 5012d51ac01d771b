"""
Data Models Package

This package contains all Pydantic models used by the Treasury Ledger.
All data flowing through the ledger must conform to these schemas.
"""

from treasury.models.ledger import (
    ACTIVITY_CATEGORY,
    CARRY_OVER_CATEGORY,
    CHOIR_GRADES,
    INITIAL_CATEGORIES,
    INSCRIPTIONS_CATEGORY,
    NEW_MEMBER_FEE,
    RETURNING_MEMBER_FEE,
    Activity,
    ActivityDraft,
    ActivityUpdate,
    AppTheme,
    Archive,
    Category,
    CategoryDraft,
    CategoryUpdate,
    Member,
    MemberDraft,
    MemberRole,
    MemberUpdate,
    Transaction,
    TransactionDraft,
    TransactionType,
    generate_id,
)
from treasury.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger constants
    "ACTIVITY_CATEGORY",
    "CARRY_OVER_CATEGORY",
    "CHOIR_GRADES",
    "INITIAL_CATEGORIES",
    "INSCRIPTIONS_CATEGORY",
    "NEW_MEMBER_FEE",
    "RETURNING_MEMBER_FEE",
    # Ledger models
    "Activity",
    "ActivityDraft",
    "ActivityUpdate",
    "AppTheme",
    "Archive",
    "Category",
    "CategoryDraft",
    "CategoryUpdate",
    "Member",
    "MemberDraft",
    "MemberRole",
    "MemberUpdate",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "generate_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
