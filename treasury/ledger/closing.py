"""
Fiscal Year Closing Engine

Produces the clean break between two fiscal periods:

1. Compute the period balance
2. Build the carry-over transaction opening the next period
3. Reset the per-member annual counters
4. Freeze the current ledger into the archive (every record ``is_archived``)
5. Assemble the closing package written to disk as the new-year starter file
6. Apply the new-period seed to the state

DESIGN DECISION: Only one archive exists. Closing again overwrites it; the
closing package file is the only copy of older years.
"""

import secrets
import string
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from treasury.ledger.state import AppState, MutationResult, MutationStatus, accept, refuse
from treasury.models.ledger import (
    CARRY_OVER_CATEGORY,
    LEDGER_MODEL_CONFIG,
    Activity,
    Archive,
    Category,
    Member,
    Transaction,
    TransactionType,
)


SMART_ARCHIVE_META = "FISCAL_YEAR_SMART_ARCHIVE"
CARRY_OVER_DESCRIPTION = "Report à Nouveau (Solde Année Précédente)"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class ClosingPackage(BaseModel):
    """
    The portable "new-year starter" file emitted by a closing.

    Two halves: the new-period seed (``carry_over_transaction``,
    ``active_members``, ``categories``, ``logo``) and the archive payload
    (``archive_data``).
    """
    model_config = LEDGER_MODEL_CONFIG

    meta: str = SMART_ARCHIVE_META
    export_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    logo: str = ""
    categories: tuple[Category, ...] = ()
    carry_over_transaction: Transaction
    active_members: tuple[Member, ...] = ()
    archive_data: Archive


class ClosingSummary(BaseModel):
    """Figures reported to the operator after a closing."""
    model_config = ConfigDict(frozen=True)

    balance: int
    carry_over_id: str
    archived_transactions: int
    archived_activities: int
    overwrote_archive: bool


def compute_balance(transactions: Iterable[Transaction]) -> int:
    """
    Income minus expenses over every given transaction.

    The previous carry-over line is real money brought forward and is
    counted like any other line.
    """
    return sum(t.signed_amount for t in transactions)


def carry_over_id(year: int) -> str:
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(5))
    return f"FY_{year}_{suffix}"


def build_carry_over_transaction(balance: int, on: date) -> Transaction:
    """
    Opening line of the next period.

    A negative balance is carried as an EXPENSE of its absolute value, so
    the new period opens already in deficit.
    """
    return Transaction(
        id=carry_over_id(on.year),
        date=on,
        amount=abs(balance),
        type=TransactionType.INCOME if balance >= 0 else TransactionType.EXPENSE,
        category=CARRY_OVER_CATEGORY,
        description=CARRY_OVER_DESCRIPTION,
        is_archived=False,
    )


def reset_members(members: Iterable[Member]) -> tuple[Member, ...]:
    """Clear the annual counters. Identity, role and contact details are kept."""
    return tuple(
        m.model_copy(update={
            "is_new_member": False,
            "registration_fee_paid": 0,
            "monthly_dues_paid": False,
        })
        for m in members
    )


def build_archive(
    transactions: Iterable[Transaction],
    activities: Iterable[Activity],
    members: Iterable[Member],
    carry_over: Optional[Transaction] = None,
) -> Archive:
    """
    Freeze the period.

    ``members`` is stored verbatim (pre-reset) so the fee status of the
    closed year stays inspectable.
    """
    return Archive(
        transactions=tuple(t.model_copy(update={"is_archived": True}) for t in transactions),
        activities=tuple(a.model_copy(update={"is_archived": True}) for a in activities),
        members_snapshot=tuple(members),
        carry_over_snapshot=carry_over,
    )


def build_closing_package(
    state: AppState,
    today: Optional[date] = None,
) -> tuple[ClosingPackage, ClosingSummary]:
    """Compute everything a closing produces without touching the state."""
    on = today or date.today()
    balance = compute_balance(state.transactions)
    carry_over = build_carry_over_transaction(balance, on)
    archive = build_archive(
        state.transactions,
        state.activities,
        state.members,
        carry_over,
    )
    package = ClosingPackage(
        logo=state.logo,
        categories=state.categories,
        carry_over_transaction=carry_over,
        active_members=reset_members(state.members),
        archive_data=archive,
    )
    summary = ClosingSummary(
        balance=balance,
        carry_over_id=carry_over.id,
        archived_transactions=len(archive.transactions),
        archived_activities=len(archive.activities),
        overwrote_archive=state.archives is not None,
    )
    return package, summary


def close_fiscal_year(
    state: AppState,
    *,
    today: Optional[date] = None,
) -> tuple[MutationResult, Optional[ClosingPackage], Optional[ClosingSummary]]:
    """
    Close the current fiscal year.

    Refused in HISTORICAL mode. Otherwise the state becomes the new-period
    seed: one carry-over transaction, reset members, no activities and the
    fresh archive. Categories and logo carry over untouched.
    """
    if state.is_archive_mode:
        return refuse(state, MutationStatus.REFUSED_READ_ONLY), None, None

    package, summary = build_closing_package(state, today)
    next_state = state.evolve(
        transactions=(package.carry_over_transaction,),
        members=package.active_members,
        activities=(),
        archives=package.archive_data,
    )
    return accept(next_state, package.carry_over_transaction.id), package, summary
