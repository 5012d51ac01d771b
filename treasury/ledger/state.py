"""
Application State

The whole ledger lives in one immutable ``AppState`` value. Mutators take
the current state plus an intent and return a ``MutationResult`` carrying
the next state and an explicit status.

DESIGN DECISION: A refused operation is never a silent no-op. It returns
the input state untouched together with a status saying why, so callers
and tests can tell "accepted" from "refused" without diffing state.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from treasury.models.ledger import (
    INITIAL_CATEGORIES,
    Activity,
    AppTheme,
    Archive,
    Category,
    Member,
    Transaction,
)


class LedgerMode(str, Enum):
    """
    The two states of the archive mode controller.

    LIVE is editable and is the initial mode.
    HISTORICAL shows the archive read-only.
    """
    LIVE = "live"
    HISTORICAL = "historical"


class MutationStatus(str, Enum):
    """Outcome of a mutator call."""
    ACCEPTED = "accepted"
    REFUSED_READ_ONLY = "refused_read_only"      # HISTORICAL mode is active
    REFUSED_ARCHIVED = "refused_archived"        # target belongs to a closed year
    REFUSED_NOT_FOUND = "refused_not_found"      # unknown id
    REFUSED_DUPLICATE = "refused_duplicate"      # caller-side duplicate check
    REFUSED_PROTECTED = "refused_protected"      # distinguished category
    REFUSED_NO_ARCHIVE = "refused_no_archive"    # archive mode guard
    REFUSED_INVALID = "refused_invalid"          # payload outside the accepted range


class HeldCollections(BaseModel):
    """
    Holding slot for the live period data while the archive is displayed.

    Capacity is exactly one: the state carries at most one of these.
    """
    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    members: tuple[Member, ...] = ()
    activities: tuple[Activity, ...] = ()


class AppState(BaseModel):
    """
    Top-level application state.

    ``transactions``, ``members`` and ``activities`` are the ACTIVE
    collections: the live period in LIVE mode, the archive copies in
    HISTORICAL mode. ``categories`` are shared by both modes.
    """
    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    members: tuple[Member, ...] = ()
    categories: tuple[Category, ...] = INITIAL_CATEGORIES
    activities: tuple[Activity, ...] = ()
    archives: Optional[Archive] = None
    holding: Optional[HeldCollections] = None
    mode: LedgerMode = LedgerMode.LIVE
    logo: str = ""
    theme: AppTheme = AppTheme.SYSTEM

    @property
    def is_archive_mode(self) -> bool:
        return self.mode == LedgerMode.HISTORICAL

    def evolve(self, **changes) -> "AppState":
        """Return a copy of the state with ``changes`` applied."""
        return self.model_copy(update=changes)

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def find_member(self, member_id: str) -> Optional[Member]:
        return next((m for m in self.members if m.id == member_id), None)

    def find_activity(self, activity_id: str) -> Optional[Activity]:
        return next((a for a in self.activities if a.id == activity_id), None)

    def find_category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)


class MutationResult(BaseModel):
    """Next state plus the outcome of the mutation that produced it."""
    model_config = ConfigDict(frozen=True)

    state: AppState
    status: MutationStatus
    entity_id: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status == MutationStatus.ACCEPTED


def accept(state: AppState, entity_id: Optional[str] = None) -> MutationResult:
    return MutationResult(state=state, status=MutationStatus.ACCEPTED, entity_id=entity_id)


def refuse(
    state: AppState,
    status: MutationStatus,
    entity_id: Optional[str] = None,
) -> MutationResult:
    return MutationResult(state=state, status=status, entity_id=entity_id)
