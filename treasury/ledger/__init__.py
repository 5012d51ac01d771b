"""
Ledger Core Package

Application state, the mutators applied to it, the registration/activity
linkage helpers, the fiscal year closing engine and the archive mode
controller. Nothing in this package performs I/O.
"""

from treasury.ledger.archive_mode import (
    enter_archive_mode,
    exit_archive_mode,
    live_collections,
)
from treasury.ledger.closing import (
    ClosingPackage,
    ClosingSummary,
    build_closing_package,
    close_fiscal_year,
    compute_balance,
)
from treasury.ledger.state import (
    AppState,
    HeldCollections,
    LedgerMode,
    MutationResult,
    MutationStatus,
)

__all__ = [
    # State
    "AppState",
    "HeldCollections",
    "LedgerMode",
    "MutationResult",
    "MutationStatus",
    # Closing
    "ClosingPackage",
    "ClosingSummary",
    "build_closing_package",
    "close_fiscal_year",
    "compute_balance",
    # Archive mode
    "enter_archive_mode",
    "exit_archive_mode",
    "live_collections",
]
