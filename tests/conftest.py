"""
Shared fixtures for the Treasury Ledger tests.

No real API calls and no real clock: every date-dependent operation gets
``today`` explicitly.
"""

from datetime import date

import pytest

from treasury.ledger import mutators
from treasury.ledger.state import AppState
from treasury.models.ledger import (
    ActivityDraft,
    MemberDraft,
    MemberRole,
    TransactionDraft,
    TransactionType,
)


@pytest.fixture
def today() -> date:
    return date(2025, 9, 15)


@pytest.fixture
def empty_state() -> AppState:
    return AppState()


@pytest.fixture
def child_draft() -> MemberDraft:
    """A new choir child who paid half of the 5000 fee."""
    return MemberDraft(
        first_name="Jean",
        last_name="Kouassi",
        role=MemberRole.CHOIR_CHILD,
        grade="Samuel",
        is_new_member=True,
        registration_fee_paid=2500,
    )


@pytest.fixture
def adult_draft() -> MemberDraft:
    return MemberDraft(
        first_name="Awa",
        last_name="Traoré",
        role=MemberRole.RESPONSABLE,
        phone="0700000000",
    )


@pytest.fixture
def populated_state(today, child_draft, adult_draft) -> AppState:
    """
    A small live ledger.

    Members: Kouassi Jean (child, new, paid 2500) and Traoré Awa (adult).
    Activity: "Sortie Plage" (3000 child / 5000 adult).
    Transactions, newest first: Transport -3000, Dons +10000,
    Inscriptions +2500. Balance: 9500.
    """
    state = AppState()
    state = mutators.add_member(state, child_draft, today=today).state
    state = mutators.add_member(state, adult_draft, today=today).state
    state = mutators.add_activity(
        state,
        ActivityDraft(
            name="Sortie Plage",
            date=date(2025, 10, 4),
            location="Assinie",
            cost_child=3000,
            cost_responsable=5000,
        ),
    ).state
    state = mutators.add_transaction(
        state,
        TransactionDraft(
            date=date(2025, 9, 10),
            amount=10000,
            type=TransactionType.INCOME,
            category="Dons",
            description="Don paroissien",
        ),
    ).state
    state = mutators.add_transaction(
        state,
        TransactionDraft(
            date=date(2025, 9, 12),
            amount=3000,
            type=TransactionType.EXPENSE,
            category="Transport",
            description="Bus pour la répétition",
        ),
    ).state
    return state


@pytest.fixture
def child(populated_state):
    return populated_state.members[0]


@pytest.fixture
def adult(populated_state):
    return populated_state.members[1]


@pytest.fixture
def activity(populated_state):
    return populated_state.activities[0]
