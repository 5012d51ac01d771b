"""
Main Orchestrator for Treasury Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger edits (intent -> mutator -> persist -> audit)
2. Fiscal year closing (package -> starter file -> new period)
3. Archive browsing (enter/exit the read-only historical view)
4. Backup export and file import
5. Advisor questions (state -> snapshot -> advisor)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The state only changes through ledger mutators
- Every accepted change is persisted, every refusal is audited
- The duplicate-enrollment check happens here, before the mutator

This is the "glue" that keeps the in-memory ledger, the blob store and
the audit trail in agreement.
"""

from datetime import date
from pathlib import Path
from typing import Any, Optional

import structlog

from treasury.agents import ERROR_TEXT, TreasuryAdvisor
from treasury.audit import AuditLogger
from treasury.config import get_settings
from treasury.ledger import archive_mode, closing, mutators
from treasury.ledger.linkage import is_enrolled
from treasury.ledger.state import AppState, MutationResult, MutationStatus, refuse
from treasury.models.audit import AuditEventBuilder, AuditEventType
from treasury.models.ledger import (
    ActivityDraft,
    ActivityUpdate,
    AppTheme,
    CategoryDraft,
    CategoryUpdate,
    MemberDraft,
    MemberUpdate,
    TransactionDraft,
)
from treasury.queries import build_advisor_snapshot
from treasury.services.codec import (
    BACKUP_FILE_PREFIX,
    CLOSING_FILE_PREFIX,
    CodecError,
    ImportOutcome,
    apply_import,
    build_backup,
    parse_import,
    write_export,
)
from treasury.services.persistence import SaveReport, load_state, save_state
from treasury.services.storage import (
    BlobStoreInterface,
    FileBlobStore,
    InMemoryBlobStore,
)


logger = structlog.get_logger()


class TreasuryApp:
    """
    Application facade.

    Holds the single ``AppState`` and applies every operation through the
    ledger mutators. Mutating methods return the ``MutationResult`` so a
    caller can tell an accepted change from a refused one.
    """

    def __init__(
        self,
        store: Optional[BlobStoreInterface] = None,
        state: Optional[AppState] = None,
        audit_logger: Optional[AuditLogger] = None,
        advisor: Optional[TreasuryAdvisor] = None,
        export_dir: Path = Path("exports"),
        currency: str = "FCFA",
    ):
        self._store = store or InMemoryBlobStore()
        self._audit_logger = audit_logger or AuditLogger()
        self._advisor = advisor
        self._export_dir = Path(export_dir)
        self._currency = currency
        self.last_save_report: Optional[SaveReport] = None

        if state is None:
            state, report = load_state(self._store)
            for key, reason in report.failed_keys.items():
                self._audit_logger.log_storage_failure(key, reason, write=False)
        self._state = state

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _persist(self) -> SaveReport:
        report = save_state(self._store, self._state)
        for key, reason in report.failed.items():
            self._audit_logger.log_storage_failure(key, reason, write=True)
        self.last_save_report = report
        return report

    def _commit(
        self,
        operation: str,
        result: MutationResult,
        event_type: AuditEventType,
        entity_type: str,
        description: str,
        **details: Any,
    ) -> MutationResult:
        """Adopt an accepted result (persist + audit) or audit a refusal."""
        if not result.accepted:
            self._audit_logger.log_refusal(operation, result.status.value, result.entity_id)
            return result

        self._state = result.state
        self._persist()
        self._audit_logger.log_ledger_change(
            event_type,
            entity_type,
            result.entity_id,
            description,
            **details,
        )
        return result

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(self, draft: TransactionDraft) -> MutationResult:
        return self._commit(
            "add_transaction",
            mutators.add_transaction(self._state, draft),
            AuditEventType.TRANSACTION_ADDED,
            "transaction",
            f"{draft.type.value} of {draft.amount} {self._currency} in '{draft.category}'",
            amount=draft.amount,
        )

    def delete_transaction(self, transaction_id: str) -> MutationResult:
        return self._commit(
            "delete_transaction",
            mutators.delete_transaction(self._state, transaction_id),
            AuditEventType.TRANSACTION_DELETED,
            "transaction",
            "Transaction deleted",
        )

    # =========================================================================
    # MEMBERS
    # =========================================================================

    def add_member(
        self,
        draft: MemberDraft,
        effective_date: Optional[date] = None,
    ) -> MutationResult:
        return self._commit(
            "add_member",
            mutators.add_member(self._state, draft, effective_date),
            AuditEventType.MEMBER_ADDED,
            "member",
            f"Member added: {draft.last_name} {draft.first_name}",
            registration_fee_paid=draft.registration_fee_paid,
        )

    def add_registration_entry(
        self,
        draft: MemberDraft,
        effective_date: Optional[date] = None,
    ) -> MutationResult:
        return self._commit(
            "add_registration_entry",
            mutators.add_registration_entry(self._state, draft, effective_date),
            AuditEventType.MEMBER_ADDED,
            "member",
            f"Member registered from an entry: {draft.last_name} {draft.first_name}",
            registration_fee_paid=draft.registration_fee_paid,
        )

    def update_member(self, member_id: str, patch: MemberUpdate) -> MutationResult:
        return self._commit(
            "update_member",
            mutators.update_member(self._state, member_id, patch),
            AuditEventType.MEMBER_UPDATED,
            "member",
            "Member updated",
            fields=sorted(patch.model_dump(exclude_unset=True)),
        )

    def delete_member(self, member_id: str) -> MutationResult:
        return self._commit(
            "delete_member",
            mutators.delete_member(self._state, member_id),
            AuditEventType.MEMBER_DELETED,
            "member",
            "Member and linked transactions deleted",
        )

    def update_registration(self, member_id: str, delta: int) -> MutationResult:
        return self._commit(
            "update_registration",
            mutators.update_registration(self._state, member_id, delta),
            AuditEventType.REGISTRATION_REGULARIZED,
            "member",
            f"Registration topped up by {delta} {self._currency}",
            member_id=member_id,
            delta=delta,
        )

    def toggle_monthly_dues(self, member_id: str) -> MutationResult:
        return self._commit(
            "toggle_monthly_dues",
            mutators.toggle_monthly_dues(self._state, member_id),
            AuditEventType.DUES_TOGGLED,
            "member",
            "Monthly dues toggled",
        )

    # =========================================================================
    # ACTIVITIES
    # =========================================================================

    def add_activity(self, draft: ActivityDraft) -> MutationResult:
        return self._commit(
            "add_activity",
            mutators.add_activity(self._state, draft),
            AuditEventType.ACTIVITY_ADDED,
            "activity",
            f"Activity added: {draft.name}",
        )

    def update_activity(self, activity_id: str, patch: ActivityUpdate) -> MutationResult:
        return self._commit(
            "update_activity",
            mutators.update_activity(self._state, activity_id, patch),
            AuditEventType.ACTIVITY_UPDATED,
            "activity",
            "Activity updated",
        )

    def delete_activity(self, activity_id: str) -> MutationResult:
        return self._commit(
            "delete_activity",
            mutators.delete_activity(self._state, activity_id),
            AuditEventType.ACTIVITY_DELETED,
            "activity",
            "Activity and linked transactions deleted",
        )

    def enroll_member(self, activity_id: str, member_id: str) -> MutationResult:
        """
        Enroll a member in an activity.

        A member already holding a participation transaction for the
        activity is refused with REFUSED_DUPLICATE.
        """
        if self._state.is_archive_mode:
            result = refuse(self._state, MutationStatus.REFUSED_READ_ONLY)
        elif is_enrolled(self._state.transactions, activity_id, member_id):
            result = refuse(self._state, MutationStatus.REFUSED_DUPLICATE, activity_id)
        else:
            result = mutators.register_member_to_activity(self._state, activity_id, member_id)
        return self._commit(
            "enroll_member",
            result,
            AuditEventType.MEMBER_ENROLLED,
            "activity",
            "Member enrolled",
            activity_id=activity_id,
            member_id=member_id,
        )

    def unenroll_member(self, activity_id: str, member_id: str) -> MutationResult:
        return self._commit(
            "unenroll_member",
            mutators.unregister_member_from_activity(self._state, activity_id, member_id),
            AuditEventType.MEMBER_UNENROLLED,
            "activity",
            "Member unenrolled",
            activity_id=activity_id,
            member_id=member_id,
        )

    # =========================================================================
    # CATEGORIES AND SETTINGS
    # =========================================================================

    def add_category(self, draft: CategoryDraft) -> MutationResult:
        return self._commit(
            "add_category",
            mutators.add_category(self._state, draft),
            AuditEventType.CATEGORY_ADDED,
            "category",
            f"Category added: {draft.name}",
        )

    def update_category(self, category_id: str, patch: CategoryUpdate) -> MutationResult:
        return self._commit(
            "update_category",
            mutators.update_category(self._state, category_id, patch),
            AuditEventType.CATEGORY_UPDATED,
            "category",
            "Category updated",
        )

    def delete_category(self, category_id: str) -> MutationResult:
        return self._commit(
            "delete_category",
            mutators.delete_category(self._state, category_id),
            AuditEventType.CATEGORY_DELETED,
            "category",
            "Category deleted",
        )

    def reset_data(self) -> MutationResult:
        return self._commit(
            "reset_data",
            mutators.reset_data(self._state),
            AuditEventType.DATA_RESET,
            "ledger",
            "All period data, the archive and the logo were erased",
        )

    def update_logo(self, logo: str) -> MutationResult:
        return self._commit(
            "update_logo",
            mutators.update_logo(self._state, logo),
            AuditEventType.SETTINGS_UPDATED,
            "settings",
            "Logo updated" if logo else "Logo removed",
        )

    def set_theme(self, theme: AppTheme) -> MutationResult:
        return self._commit(
            "set_theme",
            mutators.set_theme(self._state, theme),
            AuditEventType.SETTINGS_UPDATED,
            "settings",
            f"Theme set to {theme.value}",
        )

    # =========================================================================
    # FISCAL YEAR AND ARCHIVE
    # =========================================================================

    def close_fiscal_year(
        self,
        today: Optional[date] = None,
    ) -> tuple[MutationResult, Optional[Path]]:
        """
        Close the fiscal year.

        The starter file is written BEFORE the state changes: if it cannot
        be written the closing is abandoned and the error propagates.

        Returns:
            (result, path of the starter file or None when refused)
        """
        result, package, summary = closing.close_fiscal_year(self._state, today=today)
        if not result.accepted:
            self._audit_logger.log_refusal("close_fiscal_year", result.status.value)
            return result, None

        path = write_export(self._export_dir, package, CLOSING_FILE_PREFIX, today)

        self._state = result.state
        self._persist()
        self._audit_logger.log(
            AuditEventBuilder.fiscal_year_closed(
                balance=summary.balance,
                carry_over_id=summary.carry_over_id,
                archived_transactions=summary.archived_transactions,
                archived_activities=summary.archived_activities,
                overwrote_archive=summary.overwrote_archive,
            )
        )
        return result, path

    def enter_archive_mode(self) -> MutationResult:
        result = archive_mode.enter_archive_mode(self._state)
        if not result.accepted:
            self._audit_logger.log_refusal("enter_archive_mode", result.status.value)
            return result
        self._state = result.state
        self._audit_logger.log(AuditEventBuilder.archive_mode_changed(entered=True))
        return result

    def exit_archive_mode(self) -> MutationResult:
        result = archive_mode.exit_archive_mode(self._state)
        if not result.accepted:
            self._audit_logger.log_refusal("exit_archive_mode", result.status.value)
            return result
        self._state = result.state
        self._audit_logger.log(AuditEventBuilder.archive_mode_changed(entered=False))
        return result

    # =========================================================================
    # FILES
    # =========================================================================

    def export_backup(self, today: Optional[date] = None) -> Path:
        """Write a standard backup of the live data and return its path."""
        path = write_export(self._export_dir, build_backup(self._state), BACKUP_FILE_PREFIX, today)
        self._audit_logger.log_ledger_change(
            AuditEventType.BACKUP_EXPORTED,
            "file",
            path.name,
            "Standard backup exported",
        )
        return path

    def import_text(self, text: str) -> ImportOutcome:
        """
        Import a backup or starter file from its text.

        On any error the current state is kept and the error propagates.

        Raises:
            CodecError: If the file cannot be parsed or is not recognised
        """
        try:
            outcome = apply_import(self._state, parse_import(text))
        except CodecError as e:
            self._audit_logger.log(AuditEventBuilder.import_rejected(str(e)))
            raise

        self._state = outcome.state
        self._persist()
        self._audit_logger.log(
            AuditEventBuilder.import_applied(
                file_format=outcome.format.value,
                transactions=len(outcome.state.transactions),
                members=len(outcome.state.members),
                has_archive=outcome.has_archive,
            )
        )
        return outcome

    def import_file(self, path: Path) -> ImportOutcome:
        return self.import_text(Path(path).read_text(encoding="utf-8"))

    # =========================================================================
    # ADVISOR
    # =========================================================================

    def advisor_snapshot(self) -> dict:
        return build_advisor_snapshot(
            self._state.transactions,
            self._state.members,
            self._state.categories,
            self._state.activities,
            currency=self._currency,
        )

    async def ask_advisor(self, question: str) -> str:
        """Forward a question with the current snapshot. Never raises."""
        self._audit_logger.log_ledger_change(
            AuditEventType.ADVISOR_QUESTION,
            "advisor",
            None,
            "Question sent to the advisor",
            question_length=len(question),
        )
        if self._advisor is None:
            self._audit_logger.log_external_service_error("gemini", "Advisor not configured")
            return ERROR_TEXT

        answer = await self._advisor.ask(question, self.advisor_snapshot())
        if answer == ERROR_TEXT:
            self._audit_logger.log_external_service_error("gemini", "Advisor call failed")
        return answer


def create_app_components(
    use_file_store: bool = True,
) -> TreasuryApp:
    """
    Factory function to create the application.

    Args:
        use_file_store: Whether to persist to the data directory.
                    Set to False for an in-memory ledger.

    Returns:
        The ready-to-use application, state loaded from the store
    """
    settings = get_settings()
    app_settings = settings.app

    if use_file_store:
        store = FileBlobStore(app_settings.data_dir, app_settings.storage_quota_bytes)
    else:
        store = InMemoryBlobStore(app_settings.storage_quota_bytes)

    advisor = None
    try:
        advisor = TreasuryAdvisor(
            settings.gemini,
            association_name=app_settings.association_name,
            currency=app_settings.currency,
        )
    except Exception as e:
        # Advisor not configured - the ledger works without it
        logger.warning("advisor_not_configured", error=str(e))

    return TreasuryApp(
        store=store,
        advisor=advisor,
        export_dir=app_settings.export_dir,
        currency=app_settings.currency,
    )
