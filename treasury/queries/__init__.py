"""Ledger analytics package."""

from treasury.queries.analytics import (
    BalanceLine,
    CategoryTotal,
    LedgerTotals,
    RegistrationDebt,
    SortKey,
    TransactionFilter,
    build_advisor_snapshot,
    category_breakdown,
    filter_transactions,
    ledger_totals,
    running_balances,
    unpaid_members,
)

__all__ = [
    "BalanceLine",
    "CategoryTotal",
    "LedgerTotals",
    "RegistrationDebt",
    "SortKey",
    "TransactionFilter",
    "build_advisor_snapshot",
    "category_breakdown",
    "filter_transactions",
    "ledger_totals",
    "running_balances",
    "unpaid_members",
]
