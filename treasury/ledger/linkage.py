"""
Registration and Activity Linkage

A member's registration fee and an activity enrollment are both carried
by ordinary ledger transactions:

- The member's ``registration_fee_paid`` is mirrored by exactly one
  unarchived "Inscriptions" transaction tagged with the member id.
- "Member X is enrolled in activity Y" means a transaction exists with
  both ids set. There is no separate enrollment record.

The helpers below derive those links. They never change state; the
mutators use them to keep both sides in agreement.
"""

import unicodedata
from datetime import date
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from treasury.models.ledger import (
    INSCRIPTIONS_CATEGORY,
    NEW_MEMBER_FEE,
    RETURNING_MEMBER_FEE,
    Activity,
    Member,
    MemberRole,
    Transaction,
    TransactionType,
)


# =============================================================================
# REGISTRATION FEES
# =============================================================================

class RegistrationStatus(BaseModel):
    """Where a choir child stands against the expected registration fee."""
    model_config = ConfigDict(frozen=True)

    expected: int
    paid: int
    remaining: int

    @property
    def settled(self) -> bool:
        return self.remaining <= 0


def expected_registration_fee(member: Member) -> int:
    """
    Fee a member is expected to pay for the year.

    Choir children pay one of two tiers depending on whether they are new.
    Responsible adults pay nothing.
    """
    if member.role != MemberRole.CHOIR_CHILD:
        return 0
    return NEW_MEMBER_FEE if member.is_new_member else RETURNING_MEMBER_FEE


def registration_status(member: Member) -> Optional[RegistrationStatus]:
    """Return the fee status of a choir child, None for responsible adults."""
    if member.role != MemberRole.CHOIR_CHILD:
        return None
    expected = expected_registration_fee(member)
    return RegistrationStatus(
        expected=expected,
        paid=member.registration_fee_paid,
        remaining=expected - member.registration_fee_paid,
    )


def registration_description(
    first_name: str,
    last_name: str,
    role: MemberRole,
    is_new_member: bool,
    updated: bool = False,
) -> str:
    """Build the description of a member's "Inscriptions" transaction."""
    suffix = " (Mise à jour)" if updated else ""
    if role == MemberRole.CHOIR_CHILD:
        status = "Nouveau" if is_new_member else "Ancien"
        return f"Inscription{suffix}: {last_name} {first_name} ({status})"
    return f"Inscription Responsable{suffix}: {last_name} {first_name}"


def regularization_description(member: Member) -> str:
    return f"Régularisation Inscription: {member.last_name} {member.first_name}"


def find_registration_index(
    transactions: Sequence[Transaction],
    member_id: str,
) -> Optional[int]:
    """
    Index of the member's unarchived "Inscriptions" transaction.

    New lines are prepended, so the registration line is the LAST match:
    "Régularisation" top-ups created later sit in front of it.
    Archived registration lines belong to a closed year and are ignored.
    """
    found = None
    for index, transaction in enumerate(transactions):
        if (
            transaction.member_id == member_id
            and transaction.category == INSCRIPTIONS_CATEGORY
            and not transaction.is_archived
        ):
            found = index
    return found


def find_registration_transaction(
    transactions: Sequence[Transaction],
    member_id: str,
) -> Optional[Transaction]:
    index = find_registration_index(transactions, member_id)
    return transactions[index] if index is not None else None


def registration_total(transactions: Iterable[Transaction], member_id: str) -> int:
    """Sum of every unarchived "Inscriptions" line of a member."""
    return sum(
        t.amount
        for t in transactions
        if t.member_id == member_id
        and t.category == INSCRIPTIONS_CATEGORY
        and not t.is_archived
    )


def normalize_name(text: str) -> str:
    """Lower-case, accent-free, single-spaced form of a name for comparisons."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return " ".join(stripped.lower().split())


def find_member_by_name(
    members: Iterable[Member],
    first_name: str,
    last_name: str,
) -> Optional[Member]:
    first, last = normalize_name(first_name), normalize_name(last_name)
    for member in members:
        if normalize_name(member.first_name) == first and normalize_name(member.last_name) == last:
            return member
    return None


# =============================================================================
# ACTIVITY ENROLLMENT
# =============================================================================

class Enrollment(BaseModel):
    """A member enrolled in an activity, as seen through its payment."""
    model_config = ConfigDict(frozen=True)

    member: Member
    payment_date: date
    transaction_id: str


class ActivitySummary(BaseModel):
    """Money in and out of one activity."""
    model_config = ConfigDict(frozen=True)

    activity_id: str
    name: str
    date: date
    revenue: int
    spending: int
    net_balance: int
    participants: int
    cost_child: int
    cost_responsable: int


def activity_fee_for(activity: Activity, member: Member) -> int:
    """Price of the activity for this member's role."""
    if member.role == MemberRole.CHOIR_CHILD:
        return activity.cost_child
    return activity.cost_responsable


def participation_description(activity: Activity, member: Member) -> str:
    return f"Participation {activity.name}: {member.last_name} {member.first_name}"


def participation_transaction(
    transactions: Iterable[Transaction],
    activity_id: str,
    member_id: str,
) -> Optional[Transaction]:
    """First transaction linking the member to the activity."""
    return next(
        (
            t for t in transactions
            if t.activity_id == activity_id and t.member_id == member_id
        ),
        None,
    )


def is_enrolled(
    transactions: Iterable[Transaction],
    activity_id: str,
    member_id: str,
) -> bool:
    return participation_transaction(transactions, activity_id, member_id) is not None


def enrollments(
    transactions: Iterable[Transaction],
    members: Iterable[Member],
    activity_id: str,
) -> list[Enrollment]:
    """
    Members enrolled in an activity, in payment order.

    Sorted by the linked transaction's date ascending (not by name) so
    reports follow registration chronology. Transactions pointing at an
    unknown member are skipped.
    """
    by_id = {m.id: m for m in members}
    result = []
    for transaction in transactions:
        if (
            transaction.activity_id != activity_id
            or transaction.type != TransactionType.INCOME
            or not transaction.member_id
        ):
            continue
        member = by_id.get(transaction.member_id)
        if member is None:
            continue
        result.append(
            Enrollment(
                member=member,
                payment_date=transaction.date,
                transaction_id=transaction.id,
            )
        )
    result.sort(key=lambda e: e.payment_date)
    return result


def activity_summary(
    transactions: Iterable[Transaction],
    activity: Activity,
) -> ActivitySummary:
    linked = [t for t in transactions if t.activity_id == activity.id]
    revenue = sum(t.amount for t in linked if t.type == TransactionType.INCOME)
    spending = sum(t.amount for t in linked if t.type == TransactionType.EXPENSE)
    participants = sum(
        1 for t in linked if t.type == TransactionType.INCOME and t.member_id
    )
    return ActivitySummary(
        activity_id=activity.id,
        name=activity.name,
        date=activity.date,
        revenue=revenue,
        spending=spending,
        net_balance=revenue - spending,
        participants=participants,
        cost_child=activity.cost_child,
        cost_responsable=activity.cost_responsable,
    )
