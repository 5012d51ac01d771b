"""
Ledger Analytics

Read-only figures derived from the ledger: running balances, totals,
per-category and per-activity breakdowns, unpaid registrations, filtered
transaction listings and the snapshot handed to the AI advisor.

DESIGN DECISION: Figures are COMPUTED here, never by the advisor.
The advisor only receives the snapshot built by ``build_advisor_snapshot``
and formats an answer from it.
"""

from datetime import date
from enum import Enum
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from treasury.ledger.linkage import (
    ActivitySummary,
    activity_summary,
    registration_status,
)
from treasury.models.ledger import (
    Activity,
    Category,
    Member,
    MemberRole,
    Transaction,
    TransactionType,
)


LATEST_TRANSACTIONS_IN_SNAPSHOT = 15


# =============================================================================
# RESULT MODELS
# =============================================================================

class LedgerTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_income: int
    total_expense: int
    balance: int


class BalanceLine(BaseModel):
    """A transaction with the balance right after it, in date order."""
    model_config = ConfigDict(frozen=True)

    transaction: Transaction
    balance_after: int


class CategoryTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: TransactionType
    total: int


class RegistrationDebt(BaseModel):
    """A choir child who has not paid the full registration fee."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    name: str
    is_new: bool
    paid: int
    remaining: int


class SortKey(str, Enum):
    DATE = "date"
    AMOUNT = "amount"


class TransactionFilter(BaseModel):
    """
    Filter and ordering of a transaction listing.

    Every criterion is optional; an empty filter lists everything, newest
    first.
    """
    model_config = ConfigDict(frozen=True)

    search: Optional[str] = Field(
        default=None,
        description="Case-insensitive text matched against description and category"
    )
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_by: SortKey = SortKey.DATE
    descending: bool = True


# =============================================================================
# BALANCES
# =============================================================================

def ledger_totals(transactions: Iterable[Transaction]) -> LedgerTotals:
    income = 0
    expense = 0
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return LedgerTotals(total_income=income, total_expense=expense, balance=income - expense)


def running_balances(transactions: Iterable[Transaction]) -> list[BalanceLine]:
    """
    Running balance in chronological order.

    The sort is stable, so lines of the same day keep their relative
    order. The last ``balance_after`` always equals the ledger balance.
    """
    ordered = sorted(transactions, key=lambda t: t.date)
    balance = 0
    lines = []
    for transaction in ordered:
        balance += transaction.signed_amount
        lines.append(BalanceLine(transaction=transaction, balance_after=balance))
    return lines


def category_breakdown(
    transactions: Sequence[Transaction],
    categories: Iterable[Category],
) -> list[CategoryTotal]:
    """Total per category, matched on both name and type."""
    return [
        CategoryTotal(
            name=category.name,
            type=category.type,
            total=sum(
                t.amount
                for t in transactions
                if t.category == category.name and t.type == category.type
            ),
        )
        for category in categories
    ]


# =============================================================================
# MEMBERS
# =============================================================================

def unpaid_members(members: Iterable[Member]) -> list[RegistrationDebt]:
    """Choir children whose registration fee is not fully paid."""
    debts = []
    for member in members:
        status = registration_status(member)
        if status is None or status.settled:
            continue
        debts.append(
            RegistrationDebt(
                member_id=member.id,
                name=member.full_name,
                is_new=member.is_new_member,
                paid=status.paid,
                remaining=status.remaining,
            )
        )
    return debts


# =============================================================================
# LISTINGS
# =============================================================================

def filter_transactions(
    transactions: Iterable[Transaction],
    criteria: Optional[TransactionFilter] = None,
) -> list[BalanceLine]:
    """
    Filter and sort a listing.

    Running balances are computed over the FULL ledger first so each
    line shows the real balance after it, whatever the filter.
    """
    criteria = criteria or TransactionFilter()
    lines = running_balances(transactions)

    if criteria.search:
        needle = criteria.search.lower()
        lines = [
            line for line in lines
            if needle in line.transaction.description.lower()
            or needle in line.transaction.category.lower()
        ]
    if criteria.type is not None:
        lines = [line for line in lines if line.transaction.type == criteria.type]
    if criteria.category is not None:
        lines = [line for line in lines if line.transaction.category == criteria.category]
    if criteria.date_from is not None:
        lines = [line for line in lines if line.transaction.date >= criteria.date_from]
    if criteria.date_to is not None:
        lines = [line for line in lines if line.transaction.date <= criteria.date_to]

    if criteria.sort_by == SortKey.AMOUNT:
        lines.sort(key=lambda line: line.transaction.amount, reverse=criteria.descending)
    else:
        lines.sort(key=lambda line: line.transaction.date, reverse=criteria.descending)
    return lines


# =============================================================================
# ADVISOR SNAPSHOT
# =============================================================================

def _activity_entry(summary: ActivitySummary) -> dict:
    return {
        "name": summary.name,
        "date": summary.date.isoformat(),
        "revenue": summary.revenue,
        "spending": summary.spending,
        "net_balance": summary.net_balance,
        "participants": summary.participants,
        "cost_child": summary.cost_child,
        "cost_responsable": summary.cost_responsable,
    }


def build_advisor_snapshot(
    transactions: Sequence[Transaction],
    members: Sequence[Member],
    categories: Sequence[Category],
    activities: Sequence[Activity],
    currency: str = "FCFA",
) -> dict:
    """
    Read-only analytical snapshot sent with every advisor question.

    Plain JSON-ready dict. ``latest_transactions`` keeps list order, which
    is newest first since new lines are prepended.
    """
    totals = ledger_totals(transactions)
    children = [m for m in members if m.role == MemberRole.CHOIR_CHILD]

    return {
        "global_finance": {
            "total_income": totals.total_income,
            "total_expense": totals.total_expense,
            "current_balance": totals.balance,
            "currency": currency,
        },
        "category_breakdown": [
            {"name": c.name, "type": c.type.value, "total": c.total}
            for c in category_breakdown(transactions, categories)
        ],
        "activities_summary": [
            _activity_entry(activity_summary(transactions, activity))
            for activity in activities
        ],
        "members_summary": {
            "total_count": len(members),
            "children_count": len(children),
            "responsables_count": len(members) - len(children),
            "registration_debts_list": [
                {
                    "name": debt.name,
                    "isNew": debt.is_new,
                    "paid": debt.paid,
                    "remaining": debt.remaining,
                    "status": "DETTE",
                }
                for debt in unpaid_members(members)
            ],
        },
        "latest_transactions": [
            {
                "date": t.date.isoformat(),
                "type": t.type.value,
                "category": t.category,
                "description": t.description,
                "amount": t.amount,
            }
            for t in transactions[:LATEST_TRANSACTIONS_IN_SNAPSHOT]
        ],
    }
