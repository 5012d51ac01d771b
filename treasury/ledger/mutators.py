"""
Ledger Mutators

Pure functions applying a create/update/delete intent to the application
state. Each takes the current ``AppState`` plus a payload and returns a
``MutationResult``; the only impurity is identifier generation.

RULES:
- In HISTORICAL mode every period mutator is refused (REFUSED_READ_ONLY)
  and the input state comes back untouched.
- Records of a closed year (``is_archived``) are never edited or deleted,
  except by the member-deletion cascade which removes every line tied to
  the member.
- Mutators never raise for well-formed payloads. Payload validation
  happens when the draft models are built.
"""

from datetime import date
from typing import Optional

from treasury.ledger.linkage import (
    activity_fee_for,
    find_member_by_name,
    find_registration_index,
    participation_description,
    participation_transaction,
    regularization_description,
    registration_description,
)
from treasury.ledger.state import (
    AppState,
    MutationResult,
    MutationStatus,
    accept,
    refuse,
)
from treasury.models.ledger import (
    ACTIVITY_CATEGORY,
    INSCRIPTIONS_CATEGORY,
    NEW_MEMBER_FEE,
    RETURNING_MEMBER_FEE,
    Activity,
    ActivityDraft,
    ActivityUpdate,
    AppTheme,
    Category,
    CategoryDraft,
    CategoryUpdate,
    Member,
    MemberDraft,
    MemberRole,
    MemberUpdate,
    Transaction,
    TransactionDraft,
    TransactionType,
    generate_id,
)


# Member fields that may legitimately be cleared by an update
_NULLABLE_MEMBER_FIELDS = {"phone", "grade", "monthly_dues_paid"}


def _resolve_date(candidate: Optional[date]) -> date:
    return candidate if candidate is not None else date.today()


def _read_only(state: AppState) -> Optional[MutationResult]:
    if state.is_archive_mode:
        return refuse(state, MutationStatus.REFUSED_READ_ONLY)
    return None


def _replace(items: tuple, item_id: str, new_item) -> tuple:
    return tuple(new_item if existing.id == item_id else existing for existing in items)


def _registration_transaction(
    member: Member,
    on: date,
    updated: bool = False,
) -> Transaction:
    return Transaction(
        id=generate_id(),
        date=on,
        amount=member.registration_fee_paid,
        type=TransactionType.INCOME,
        category=INSCRIPTIONS_CATEGORY,
        description=registration_description(
            member.first_name,
            member.last_name,
            member.role,
            member.is_new_member,
            updated=updated,
        ),
        member_id=member.id,
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

def add_transaction(state: AppState, draft: TransactionDraft) -> MutationResult:
    """Prepend a new transaction with a freshly generated id."""
    refused = _read_only(state)
    if refused:
        return refused

    transaction = Transaction(id=generate_id(), **draft.model_dump())
    return accept(
        state.evolve(transactions=(transaction,) + state.transactions),
        transaction.id,
    )


def delete_transaction(state: AppState, transaction_id: str) -> MutationResult:
    """
    Remove a transaction.

    Deleting a member's "Inscriptions" line takes its amount back off the
    member's ``registration_fee_paid`` (never below zero).
    """
    refused = _read_only(state)
    if refused:
        return refused

    transaction = state.find_transaction(transaction_id)
    if transaction is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, transaction_id)
    if transaction.is_archived:
        return refuse(state, MutationStatus.REFUSED_ARCHIVED, transaction_id)

    members = state.members
    if transaction.is_registration:
        members = tuple(
            m.model_copy(update={
                "registration_fee_paid": max(0, m.registration_fee_paid - transaction.amount)
            })
            if m.id == transaction.member_id
            else m
            for m in members
        )

    return accept(
        state.evolve(
            transactions=tuple(t for t in state.transactions if t.id != transaction_id),
            members=members,
        ),
        transaction_id,
    )


# =============================================================================
# MEMBERS
# =============================================================================

def add_member(
    state: AppState,
    draft: MemberDraft,
    effective_date: Optional[date] = None,
    *,
    today: Optional[date] = None,
) -> MutationResult:
    """
    Create a member.

    A positive ``registration_fee_paid`` also prepends the matching
    "Inscriptions" transaction, dated ``effective_date`` or today.
    """
    refused = _read_only(state)
    if refused:
        return refused

    member = Member(id=generate_id(), **draft.model_dump())
    transactions = state.transactions
    if member.registration_fee_paid > 0:
        on = effective_date or _resolve_date(today)
        transactions = (_registration_transaction(member, on),) + transactions

    return accept(
        state.evolve(members=state.members + (member,), transactions=transactions),
        member.id,
    )


def add_registration_entry(
    state: AppState,
    draft: MemberDraft,
    effective_date: Optional[date] = None,
    *,
    today: Optional[date] = None,
) -> MutationResult:
    """
    Register a choir child from the "Inscriptions" transaction entry path.

    Refuses a child whose first and last name already exist (case and
    accents ignored). The amount is capped at the fee tier of the child
    and a missing grade defaults to the role label. Otherwise converges on
    ``add_member``.
    """
    refused = _read_only(state)
    if refused:
        return refused

    existing = find_member_by_name(state.members, draft.first_name, draft.last_name)
    if existing is not None:
        return refuse(state, MutationStatus.REFUSED_DUPLICATE, existing.id)

    tier = NEW_MEMBER_FEE if draft.is_new_member else RETURNING_MEMBER_FEE
    child = draft.model_copy(update={
        "role": MemberRole.CHOIR_CHILD,
        "grade": draft.grade or MemberRole.CHOIR_CHILD.value,
        "registration_fee_paid": min(draft.registration_fee_paid, tier),
        "monthly_dues_paid": False,
    })
    return add_member(state, child, effective_date, today=today)


def update_member(
    state: AppState,
    member_id: str,
    patch: MemberUpdate,
    *,
    today: Optional[date] = None,
) -> MutationResult:
    """
    Merge ``patch`` into a member and resynchronise its registration line.

    When the fee, a name or the new/returning status changes, the existing
    unarchived "Inscriptions" transaction is rewritten in place: its amount
    is SET to the new total (not incremented) and its description rebuilt.
    Without such a line, a fee changed to a positive value creates one.
    A member moved to a responsible-adult role is no longer "new".
    """
    refused = _read_only(state)
    if refused:
        return refused

    old = state.find_member(member_id)
    if old is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, member_id)

    changes = {
        field: value
        for field, value in patch.model_dump(exclude_unset=True).items()
        if value is not None or field in _NULLABLE_MEMBER_FIELDS
    }
    new = old.model_copy(update=changes)
    if new.role != MemberRole.CHOIR_CHILD:
        new = new.model_copy(update={"is_new_member": False})
    members = _replace(state.members, member_id, new)

    amount_changed = new.registration_fee_paid != old.registration_fee_paid
    name_changed = new.first_name != old.first_name or new.last_name != old.last_name
    status_changed = new.is_new_member != old.is_new_member

    transactions = state.transactions
    if amount_changed or name_changed or status_changed:
        index = find_registration_index(transactions, member_id)
        if index is not None:
            update = {}
            if amount_changed:
                update["amount"] = new.registration_fee_paid
            if name_changed or status_changed:
                update["description"] = registration_description(
                    new.first_name, new.last_name, new.role, new.is_new_member
                )
            rewritten = transactions[index].model_copy(update=update)
            transactions = transactions[:index] + (rewritten,) + transactions[index + 1:]
        elif amount_changed and new.registration_fee_paid > 0:
            created = _registration_transaction(new, _resolve_date(today), updated=True)
            transactions = (created,) + transactions

    return accept(state.evolve(members=members, transactions=transactions), member_id)


def delete_member(state: AppState, member_id: str) -> MutationResult:
    """Remove a member and every transaction tied to it, archived or not."""
    refused = _read_only(state)
    if refused:
        return refused

    if state.find_member(member_id) is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, member_id)

    return accept(
        state.evolve(
            members=tuple(m for m in state.members if m.id != member_id),
            transactions=tuple(t for t in state.transactions if t.member_id != member_id),
        ),
        member_id,
    )


def update_registration(
    state: AppState,
    member_id: str,
    delta: int,
    *,
    today: Optional[date] = None,
) -> MutationResult:
    """
    Top up a member's registration fee.

    Additive: the fee grows by ``delta`` and a separate "Régularisation"
    transaction of exactly ``delta`` is prepended. The existing
    registration line is left alone.
    """
    refused = _read_only(state)
    if refused:
        return refused

    member = state.find_member(member_id)
    if member is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, member_id)
    if delta <= 0:
        return refuse(state, MutationStatus.REFUSED_INVALID, member_id)

    transaction = Transaction(
        id=generate_id(),
        date=_resolve_date(today),
        amount=delta,
        type=TransactionType.INCOME,
        category=INSCRIPTIONS_CATEGORY,
        description=regularization_description(member),
        member_id=member_id,
    )
    updated = member.model_copy(update={
        "registration_fee_paid": member.registration_fee_paid + delta
    })
    return accept(
        state.evolve(
            members=_replace(state.members, member_id, updated),
            transactions=(transaction,) + state.transactions,
        ),
        transaction.id,
    )


def toggle_monthly_dues(state: AppState, member_id: str) -> MutationResult:
    refused = _read_only(state)
    if refused:
        return refused

    member = state.find_member(member_id)
    if member is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, member_id)

    toggled = member.model_copy(update={"monthly_dues_paid": not member.monthly_dues_paid})
    return accept(state.evolve(members=_replace(state.members, member_id, toggled)), member_id)


# =============================================================================
# ACTIVITIES
# =============================================================================

def add_activity(state: AppState, draft: ActivityDraft) -> MutationResult:
    refused = _read_only(state)
    if refused:
        return refused

    activity = Activity(id=generate_id(), **draft.model_dump())
    return accept(state.evolve(activities=state.activities + (activity,)), activity.id)


def update_activity(
    state: AppState,
    activity_id: str,
    patch: ActivityUpdate,
) -> MutationResult:
    refused = _read_only(state)
    if refused:
        return refused

    activity = state.find_activity(activity_id)
    if activity is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, activity_id)
    if activity.is_archived:
        return refuse(state, MutationStatus.REFUSED_ARCHIVED, activity_id)

    changes = {
        field: value
        for field, value in patch.model_dump(exclude_unset=True).items()
        if value is not None
    }
    updated = activity.model_copy(update=changes)
    return accept(
        state.evolve(activities=_replace(state.activities, activity_id, updated)),
        activity_id,
    )


def delete_activity(state: AppState, activity_id: str) -> MutationResult:
    """Remove an activity and every transaction tied to it."""
    refused = _read_only(state)
    if refused:
        return refused

    activity = state.find_activity(activity_id)
    if activity is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, activity_id)
    if activity.is_archived:
        return refuse(state, MutationStatus.REFUSED_ARCHIVED, activity_id)

    return accept(
        state.evolve(
            activities=tuple(a for a in state.activities if a.id != activity_id),
            transactions=tuple(t for t in state.transactions if t.activity_id != activity_id),
        ),
        activity_id,
    )


def register_member_to_activity(
    state: AppState,
    activity_id: str,
    member_id: str,
    *,
    today: Optional[date] = None,
) -> MutationResult:
    """
    Enroll a member by recording its participation fee.

    The fee depends on the member's role. Duplicate enrollment is NOT
    checked here; callers look it up with ``linkage.is_enrolled`` first.
    """
    refused = _read_only(state)
    if refused:
        return refused

    activity = state.find_activity(activity_id)
    member = state.find_member(member_id)
    if activity is None or member is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, activity_id)
    if activity.is_archived:
        return refuse(state, MutationStatus.REFUSED_ARCHIVED, activity_id)

    transaction = Transaction(
        id=generate_id(),
        date=_resolve_date(today),
        amount=activity_fee_for(activity, member),
        type=TransactionType.INCOME,
        category=ACTIVITY_CATEGORY,
        description=participation_description(activity, member),
        member_id=member_id,
        activity_id=activity_id,
    )
    return accept(
        state.evolve(transactions=(transaction,) + state.transactions),
        transaction.id,
    )


def unregister_member_from_activity(
    state: AppState,
    activity_id: str,
    member_id: str,
) -> MutationResult:
    """Delete the first transaction linking the member to the activity."""
    refused = _read_only(state)
    if refused:
        return refused

    activity = state.find_activity(activity_id)
    if activity is not None and activity.is_archived:
        return refuse(state, MutationStatus.REFUSED_ARCHIVED, activity_id)

    transaction = participation_transaction(state.transactions, activity_id, member_id)
    if transaction is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, activity_id)

    return accept(
        state.evolve(
            transactions=tuple(t for t in state.transactions if t.id != transaction.id)
        ),
        transaction.id,
    )


# =============================================================================
# CATEGORIES
# =============================================================================

def add_category(state: AppState, draft: CategoryDraft) -> MutationResult:
    refused = _read_only(state)
    if refused:
        return refused

    category = Category(id=generate_id(), **draft.model_dump())
    return accept(state.evolve(categories=state.categories + (category,)), category.id)


def update_category(
    state: AppState,
    category_id: str,
    patch: CategoryUpdate,
) -> MutationResult:
    """
    Update a category.

    A rename is cascaded to every transaction filed under the old name
    (transactions reference categories by name). "Inscriptions" cannot be
    renamed: registration linkage depends on it.
    """
    refused = _read_only(state)
    if refused:
        return refused

    old = state.find_category(category_id)
    if old is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, category_id)

    changes = {
        field: value
        for field, value in patch.model_dump(exclude_unset=True).items()
        if value is not None
    }
    new_name = changes.get("name", old.name)
    if old.name == INSCRIPTIONS_CATEGORY and new_name != old.name:
        return refuse(state, MutationStatus.REFUSED_PROTECTED, category_id)

    updated = old.model_copy(update=changes)
    transactions = state.transactions
    if new_name != old.name:
        transactions = tuple(
            t.model_copy(update={"category": new_name}) if t.category == old.name else t
            for t in transactions
        )

    return accept(
        state.evolve(
            categories=_replace(state.categories, category_id, updated),
            transactions=transactions,
        ),
        category_id,
    )


def delete_category(state: AppState, category_id: str) -> MutationResult:
    refused = _read_only(state)
    if refused:
        return refused

    category = state.find_category(category_id)
    if category is None:
        return refuse(state, MutationStatus.REFUSED_NOT_FOUND, category_id)
    if category.name == INSCRIPTIONS_CATEGORY:
        return refuse(state, MutationStatus.REFUSED_PROTECTED, category_id)

    return accept(
        state.evolve(categories=tuple(c for c in state.categories if c.id != category_id)),
        category_id,
    )


# =============================================================================
# SETTINGS
# =============================================================================

def reset_data(state: AppState) -> MutationResult:
    """Wipe period data, the archive and the logo. Categories are kept."""
    refused = _read_only(state)
    if refused:
        return refused

    return accept(
        state.evolve(
            transactions=(),
            members=(),
            activities=(),
            archives=None,
            logo="",
        )
    )


def update_logo(state: AppState, logo: str) -> MutationResult:
    """Replace the association logo (a data URI). Allowed in both modes."""
    return accept(state.evolve(logo=logo))


def set_theme(state: AppState, theme: AppTheme) -> MutationResult:
    """Change the display theme. Allowed in both modes."""
    return accept(state.evolve(theme=theme))
