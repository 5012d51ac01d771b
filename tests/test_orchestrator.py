"""
Tests for the application orchestrator

Test strategy:
1. Accepted changes are persisted and audited
2. Refusals are audited and leave state and store alone
3. End-to-end closing, archive browsing, export and import
4. No real API calls: the advisor gets a fake model
"""

import asyncio

import pytest

from treasury.agents import ERROR_TEXT, TreasuryAdvisor
from treasury.config import get_settings, validate_all_settings
from treasury.ledger.state import AppState, LedgerMode, MutationStatus
from treasury.models.audit import AuditEventType
from treasury.models.ledger import AppTheme
from treasury.orchestrator import TreasuryApp, create_app_components
from treasury.services.codec import ImportFormat, ImportParseError, UnrecognizedFormatError
from treasury.services.persistence import ARCHIVES_KEY, MEMBERS_KEY, TRANSACTIONS_KEY
from treasury.services.storage import FileBlobStore, InMemoryBlobStore, QuotaExceededError


class FailingArchiveStore(InMemoryBlobStore):
    def set(self, key: str, value: str) -> None:
        if key == ARCHIVES_KEY:
            raise QuotaExceededError("quota exceeded")
        super().set(key, value)


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, text):
        self.text = text
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        return FakeResponse(self.text)


@pytest.fixture
def store():
    return InMemoryBlobStore()


@pytest.fixture
def app(store, populated_state, tmp_path):
    return TreasuryApp(store=store, state=populated_state, export_dir=tmp_path)


@pytest.fixture
def clean_settings(monkeypatch, tmp_path):
    """Settings read from an empty environment."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLedgerEdits:
    """Edits flowing through the facade."""

    def test_accepted_change_is_persisted(self, store, child_draft, tmp_path):
        app = TreasuryApp(store=store, export_dir=tmp_path)
        result = app.add_member(child_draft)

        assert result.accepted
        assert app.last_save_report.ok
        reloaded = TreasuryApp(store=store, export_dir=tmp_path)
        assert reloaded.state.members == app.state.members
        assert reloaded.state.transactions == app.state.transactions

        events = app.audit_logger.recent_events(event_type=AuditEventType.MEMBER_ADDED)
        assert len(events) == 1
        assert events[0].entity_id == result.entity_id

    def test_refusal_is_audited(self, app, store):
        result = app.delete_category("inc1")

        assert result.status == MutationStatus.REFUSED_PROTECTED
        assert store.get(MEMBERS_KEY) is None
        refused = app.audit_logger.recent_events(event_type=AuditEventType.MUTATION_REFUSED)
        assert refused[0].entity_id == "inc1"

    def test_duplicate_enrollment(self, app, activity, child):
        first = app.enroll_member(activity.id, child.id)
        second = app.enroll_member(activity.id, child.id)

        assert first.accepted
        assert second.status == MutationStatus.REFUSED_DUPLICATE
        linked = [t for t in app.state.transactions if t.activity_id == activity.id]
        assert len(linked) == 1

    def test_enrollment_in_archive_mode_is_read_only(self, app, activity, child, today):
        """The lock wins over the duplicate check for a member enrolled in the archive."""
        app.enroll_member(activity.id, child.id)
        app.close_fiscal_year(today=today)
        app.enter_archive_mode()

        result = app.enroll_member(activity.id, child.id)
        assert result.status == MutationStatus.REFUSED_READ_ONLY

    def test_unenroll(self, app, activity, child, populated_state):
        app.enroll_member(activity.id, child.id)
        assert app.unenroll_member(activity.id, child.id).accepted
        assert app.state.transactions == populated_state.transactions

    def test_registration_top_up(self, app, child):
        result = app.update_registration(child.id, 2500)
        assert result.accepted
        assert app.state.find_member(child.id).registration_fee_paid == 5000
        events = app.audit_logger.recent_events(event_type=AuditEventType.REGISTRATION_REGULARIZED)
        assert events[0].details["delta"] == 2500

    def test_load_failure_is_audited(self, store, populated_state, tmp_path):
        TreasuryApp(store=store, state=populated_state, export_dir=tmp_path).toggle_monthly_dues(
            populated_state.members[0].id
        )
        store.set(MEMBERS_KEY, "{oops")

        app = TreasuryApp(store=store, export_dir=tmp_path)
        assert app.state.members == ()
        failures = app.audit_logger.recent_events(event_type=AuditEventType.STORAGE_READ_FAILED)
        assert failures[0].entity_id == MEMBERS_KEY


class TestFiscalYear:
    """Closing and archive browsing."""

    def test_close_writes_starter_file(self, app, store, today, tmp_path):
        result, path = app.close_fiscal_year(today=today)

        assert result.accepted
        assert path == tmp_path / "DEMARRAGE_NOUVELLE_ANNEE_2025-09-15.json"
        assert path.exists()
        assert app.state.archives is not None
        assert store.get(ARCHIVES_KEY) is not None
        closed = app.audit_logger.recent_events(event_type=AuditEventType.FISCAL_YEAR_CLOSED)
        assert closed[0].details["balance"] == 9500

    def test_close_refused_in_archive_mode(self, app, today):
        app.close_fiscal_year(today=today)
        app.enter_archive_mode()

        result, path = app.close_fiscal_year(today=today)
        assert result.status == MutationStatus.REFUSED_READ_ONLY
        assert path is None

    def test_archive_browsing_does_not_touch_live_blobs(self, app, store, today, child_draft):
        app.close_fiscal_year(today=today)
        live_state = app.state
        live_transactions = store.get(TRANSACTIONS_KEY)

        assert app.enter_archive_mode().accepted
        assert app.state.mode == LedgerMode.HISTORICAL
        assert app.add_member(child_draft).status == MutationStatus.REFUSED_READ_ONLY
        assert app.set_theme(AppTheme.DARK).accepted
        assert store.get(TRANSACTIONS_KEY) == live_transactions
        assert TRANSACTIONS_KEY in app.last_save_report.skipped

        assert app.exit_archive_mode().accepted
        assert app.state == live_state.evolve(theme=AppTheme.DARK)

    def test_enter_without_archive(self, app):
        result = app.enter_archive_mode()
        assert result.status == MutationStatus.REFUSED_NO_ARCHIVE
        assert app.audit_logger.recent_events(event_type=AuditEventType.MUTATION_REFUSED)

    def test_write_failure_is_audited(self, populated_state, today, tmp_path):
        app = TreasuryApp(store=FailingArchiveStore(), state=populated_state, export_dir=tmp_path)
        result, _ = app.close_fiscal_year(today=today)

        assert result.accepted
        assert not app.last_save_report.ok
        failures = app.audit_logger.recent_events(event_type=AuditEventType.STORAGE_WRITE_FAILED)
        assert failures[0].entity_id == ARCHIVES_KEY


class TestFiles:
    """Export and import through the facade."""

    def test_export_then_import(self, app, today, tmp_path):
        path = app.export_backup(today=today)
        fresh = TreasuryApp(store=InMemoryBlobStore(), export_dir=tmp_path)

        outcome = fresh.import_file(path)
        assert outcome.format == ImportFormat.STANDARD_BACKUP
        assert fresh.state.transactions == app.state.transactions
        assert fresh.state.members == app.state.members
        assert fresh.audit_logger.recent_events(event_type=AuditEventType.IMPORT_APPLIED)

    def test_import_starter_file(self, app, today, tmp_path):
        _, path = app.close_fiscal_year(today=today)
        fresh = TreasuryApp(store=InMemoryBlobStore(), export_dir=tmp_path)

        outcome = fresh.import_file(path)
        assert outcome.format == ImportFormat.SMART_ARCHIVE
        assert fresh.state.transactions == app.state.transactions
        assert fresh.state.archives == app.state.archives

    def test_malformed_logo_keeps_state_and_store(self, tmp_path, populated_state):
        store = FileBlobStore(tmp_path / "data")
        app = TreasuryApp(store=store, state=populated_state, export_dir=tmp_path)

        with pytest.raises(UnrecognizedFormatError):
            app.import_text('{"transactions": [], "members": [], "logo": {"x": 1}}')

        assert app.state == populated_state
        assert store.keys() == []
        assert app.audit_logger.recent_events(event_type=AuditEventType.IMPORT_REJECTED)

    def test_bad_import_keeps_state(self, app, populated_state):
        with pytest.raises(ImportParseError):
            app.import_text("definitely not json")

        assert app.state == populated_state
        assert app.audit_logger.recent_events(event_type=AuditEventType.IMPORT_REJECTED)


class TestAdvisor:
    """Questions to the advisor."""

    def test_without_advisor(self, app):
        answer = asyncio.run(app.ask_advisor("Quel est le solde ?"))

        assert answer == ERROR_TEXT
        assert app.audit_logger.recent_events(event_type=AuditEventType.EXTERNAL_SERVICE_ERROR)

    def test_with_advisor(self, store, populated_state, tmp_path):
        model = FakeModel("Le solde est de 9500 FCFA.")
        app = TreasuryApp(
            store=store,
            state=populated_state,
            export_dir=tmp_path,
            advisor=TreasuryAdvisor(model=model, retry_wait_seconds=0),
        )

        answer = asyncio.run(app.ask_advisor("Quel est le solde ?"))
        assert answer == "Le solde est de 9500 FCFA."
        assert '"current_balance": 9500' in model.prompts[0]


class TestFactory:
    """Application assembly from settings."""

    def test_in_memory_app_without_api_key(self, clean_settings):
        app = create_app_components(use_file_store=False)

        assert app.state == AppState()
        assert asyncio.run(app.ask_advisor("?")) == ERROR_TEXT

    def test_validate_all_settings(self, clean_settings):
        results = validate_all_settings()
        assert results["app"] is True
        assert results["gemini"] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
