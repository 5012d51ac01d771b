"""
Tests for Treasury Ledger models

Test strategy:
1. Unit tests for the data shapes (validation, wire format)
2. Audit event construction
3. No real API calls in tests
"""

import pytest
from datetime import date, timezone
from uuid import UUID

from pydantic import ValidationError

from treasury.models.ledger import (
    CARRY_OVER_CATEGORY,
    CHOIR_GRADES,
    INITIAL_CATEGORIES,
    INSCRIPTIONS_CATEGORY,
    Archive,
    Member,
    MemberRole,
    Transaction,
    TransactionType,
    generate_id,
)
from treasury.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_transaction_serializes_to_camel_case(self):
        """Saved files use the camelCase keys and the French type labels."""
        tx = Transaction(
            id="t1",
            date=date(2025, 9, 15),
            amount=2500,
            type=TransactionType.INCOME,
            category=INSCRIPTIONS_CATEGORY,
            member_id="m1",
        )
        data = tx.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert data["memberId"] == "m1"
        assert data["type"] == "RECETTE"
        assert data["date"] == "2025-09-15"
        assert "activityId" not in data
        assert "isArchived" not in data

    def test_transaction_parses_saved_file_record(self):
        """A record from an older file loads, unknown keys are ignored."""
        tx = Transaction.model_validate({
            "id": "t1",
            "date": "2024-11-02",
            "amount": 3000,
            "type": "DEPENSE",
            "category": "Transport",
            "description": "Bus",
            "isArchived": True,
            "legacyField": "ignored",
        })
        assert tx.type == TransactionType.EXPENSE
        assert tx.is_archived is True
        assert tx.signed_amount == -3000

    def test_transaction_rejects_negative_amount(self):
        """Amounts are unsigned; the type carries the direction."""
        with pytest.raises(ValueError):
            Transaction(
                id="t1",
                date=date(2025, 1, 1),
                amount=-100,
                type=TransactionType.EXPENSE,
                category="Transport",
            )

    def test_entities_are_frozen(self):
        """Records are never edited in place."""
        tx = Transaction(
            id="t1",
            date=date(2025, 1, 1),
            amount=100,
            type=TransactionType.INCOME,
            category="Dons",
        )
        with pytest.raises(ValidationError):
            tx.amount = 200

    def test_registration_flag(self):
        """Only Inscriptions lines tied to a member are registration lines."""
        linked = Transaction(
            id="t1", date=date(2025, 1, 1), amount=2500,
            type=TransactionType.INCOME, category=INSCRIPTIONS_CATEGORY, member_id="m1",
        )
        unlinked = linked.model_copy(update={"member_id": None})
        assert linked.is_registration
        assert not unlinked.is_registration

    def test_member_strips_whitespace_and_full_name(self):
        """Names are trimmed and displayed family name first."""
        member = Member(
            id="m1",
            first_name="  Jean ",
            last_name="Kouassi",
            role=MemberRole.CHOIR_CHILD,
        )
        assert member.first_name == "Jean"
        assert member.full_name == "Kouassi Jean"
        assert member.registration_fee_paid == 0

    def test_member_role_labels(self):
        """Roles keep the labels stored in saved files."""
        assert MemberRole("Enfant de Chœur") is MemberRole.CHOIR_CHILD
        assert MemberRole.CHOIR_CHILD.is_choir_child
        assert not MemberRole.RESPONSABLE_TRESORIER.is_choir_child

    def test_choir_grades_in_rank_order(self):
        assert CHOIR_GRADES[0] == "Samuel"
        assert CHOIR_GRADES[-1] == "Cérémoniaire"
        assert len(set(CHOIR_GRADES)) == len(CHOIR_GRADES)

    def test_archive_parses_members_snapshot_alias(self):
        """The archive reads the camelCase snapshot keys."""
        archive = Archive.model_validate({
            "transactions": [],
            "activities": [],
            "membersSnapshot": [
                {"id": "m1", "firstName": "Jean", "lastName": "Kouassi",
                 "role": "Enfant de Chœur", "isNewMember": True, "registrationFeePaid": 5000},
            ],
        })
        assert archive.members_snapshot[0].registration_fee_paid == 5000
        assert archive.carry_over_snapshot is None

    def test_initial_categories(self):
        """The default taxonomy holds the distinguished categories."""
        names = {c.name for c in INITIAL_CATEGORIES}
        assert INSCRIPTIONS_CATEGORY in names
        assert CARRY_OVER_CATEGORY in names
        assert len({c.id for c in INITIAL_CATEGORIES}) == len(INITIAL_CATEGORIES)

    def test_generated_ids_are_unique(self):
        ids = {generate_id() for _ in range(200)}
        assert len(ids) == 200


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            description="Member added",
        )
        assert isinstance(event.event_id, UUID)
        assert event.timestamp.tzinfo == timezone.utc
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.ledger_change(
            AuditEventType.TRANSACTION_ADDED,
            "transaction",
            "t1",
            "RECETTE of 2500 FCFA",
            {"amount": 2500},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_added"
        assert log_dict["entity_id"] == "t1"
        assert log_dict["details"] == {"amount": 2500}
        assert log_dict["is_user_action"] is True

    def test_fiscal_year_closed_severity(self):
        """Overwriting an existing archive is flagged as a warning."""
        first = AuditEventBuilder.fiscal_year_closed(9500, "FY_2025_abcde", 3, 1, False)
        again = AuditEventBuilder.fiscal_year_closed(9500, "FY_2025_abcde", 3, 1, True)
        assert first.severity == AuditSeverity.INFO
        assert again.severity == AuditSeverity.WARNING
        assert again.details["overwrote_archive"] is True

    def test_mutation_refused(self):
        event = AuditEventBuilder.mutation_refused("delete_category", "refused_protected", "inc1")
        assert event.event_type == AuditEventType.MUTATION_REFUSED
        assert event.severity == AuditSeverity.DEBUG
        assert "refused_protected" in event.description

    def test_storage_failed_read_vs_write(self):
        write = AuditEventBuilder.storage_failed("archives", "quota")
        read = AuditEventBuilder.storage_failed("members", "corrupt", write=False)
        assert write.event_type == AuditEventType.STORAGE_WRITE_FAILED
        assert write.severity == AuditSeverity.ERROR
        assert read.event_type == AuditEventType.STORAGE_READ_FAILED
        assert read.severity == AuditSeverity.WARNING


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
