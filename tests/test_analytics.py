"""
Tests for ledger analytics
"""

import json

import pytest
from datetime import date

from treasury.models.ledger import INSCRIPTIONS_CATEGORY, TransactionType
from treasury.queries.analytics import (
    SortKey,
    TransactionFilter,
    build_advisor_snapshot,
    category_breakdown,
    filter_transactions,
    ledger_totals,
    running_balances,
    unpaid_members,
)


class TestBalances:
    """Totals and running balances."""

    def test_ledger_totals(self, populated_state):
        totals = ledger_totals(populated_state.transactions)
        assert totals.total_income == 12500
        assert totals.total_expense == 3000
        assert totals.balance == 9500

    def test_running_balances_in_date_order(self, populated_state):
        lines = running_balances(populated_state.transactions)
        assert [line.transaction.category for line in lines] == [
            "Dons", "Transport", INSCRIPTIONS_CATEGORY,
        ]
        assert [line.balance_after for line in lines] == [10000, 7000, 9500]

    def test_empty_ledger(self):
        assert running_balances([]) == []
        assert ledger_totals([]).balance == 0

    def test_category_breakdown(self, populated_state):
        totals = {
            c.name: c.total
            for c in category_breakdown(populated_state.transactions, populated_state.categories)
        }
        assert totals["Dons"] == 10000
        assert totals["Transport"] == 3000
        assert totals[INSCRIPTIONS_CATEGORY] == 2500
        assert totals["Achats (Livrets)"] == 0


class TestMembers:
    """Registration debts."""

    def test_unpaid_members(self, populated_state, child):
        debts = unpaid_members(populated_state.members)
        assert len(debts) == 1
        assert debts[0].member_id == child.id
        assert debts[0].name == "Kouassi Jean"
        assert debts[0].remaining == 2500


class TestFilterTransactions:
    """Filtered listings."""

    def test_default_is_newest_first(self, populated_state):
        lines = filter_transactions(populated_state.transactions)
        assert [line.transaction.date for line in lines] == [
            date(2025, 9, 15), date(2025, 9, 12), date(2025, 9, 10),
        ]

    def test_search_keeps_full_ledger_balance(self, populated_state):
        """A filtered line still shows the real balance after it."""
        lines = filter_transactions(
            populated_state.transactions, TransactionFilter(search="BUS")
        )
        assert len(lines) == 1
        assert lines[0].balance_after == 7000

    def test_search_matches_category(self, populated_state):
        lines = filter_transactions(
            populated_state.transactions, TransactionFilter(search="inscrip")
        )
        assert [line.transaction.amount for line in lines] == [2500]

    def test_type_and_dates(self, populated_state):
        expenses = filter_transactions(
            populated_state.transactions, TransactionFilter(type=TransactionType.EXPENSE)
        )
        assert len(expenses) == 1

        window = filter_transactions(
            populated_state.transactions,
            TransactionFilter(date_from=date(2025, 9, 11), date_to=date(2025, 9, 14)),
        )
        assert [line.transaction.category for line in window] == ["Transport"]

    def test_sort_by_amount_ascending(self, populated_state):
        lines = filter_transactions(
            populated_state.transactions,
            TransactionFilter(sort_by=SortKey.AMOUNT, descending=False),
        )
        assert [line.transaction.amount for line in lines] == [2500, 3000, 10000]

    def test_category_filter(self, populated_state):
        lines = filter_transactions(
            populated_state.transactions, TransactionFilter(category="Dons")
        )
        assert [line.transaction.amount for line in lines] == [10000]


class TestAdvisorSnapshot:
    """The figures handed to the advisor."""

    def test_snapshot_contents(self, populated_state):
        snapshot = build_advisor_snapshot(
            populated_state.transactions,
            populated_state.members,
            populated_state.categories,
            populated_state.activities,
        )

        assert snapshot["global_finance"] == {
            "total_income": 12500,
            "total_expense": 3000,
            "current_balance": 9500,
            "currency": "FCFA",
        }
        members = snapshot["members_summary"]
        assert members["total_count"] == 2
        assert members["children_count"] == 1
        assert members["responsables_count"] == 1
        assert members["registration_debts_list"] == [
            {"name": "Kouassi Jean", "isNew": True, "paid": 2500, "remaining": 2500, "status": "DETTE"},
        ]
        assert snapshot["activities_summary"][0]["name"] == "Sortie Plage"
        assert snapshot["activities_summary"][0]["participants"] == 0
        assert snapshot["latest_transactions"][0]["category"] == "Transport"
        assert snapshot["latest_transactions"][0]["type"] == "DEPENSE"

    def test_snapshot_is_json_ready(self, populated_state):
        snapshot = build_advisor_snapshot(
            populated_state.transactions,
            populated_state.members,
            populated_state.categories,
            populated_state.activities,
        )
        assert json.loads(json.dumps(snapshot)) == snapshot

    def test_latest_transactions_capped(self, populated_state):
        many = populated_state.transactions * 10
        snapshot = build_advisor_snapshot(many, (), (), ())
        assert len(snapshot["latest_transactions"]) == 15


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
