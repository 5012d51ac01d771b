"""
Archive Mode Controller

Two states: LIVE (editable, initial) and HISTORICAL (read-only view of the
archive). Entering swaps the live transactions, members and activities into
the holding slot and shows the archive copies; leaving restores them
verbatim. Categories are taxonomy, not period data, and never swap.
"""

from treasury.ledger.state import (
    AppState,
    HeldCollections,
    LedgerMode,
    MutationResult,
    MutationStatus,
    accept,
    refuse,
)


def enter_archive_mode(state: AppState) -> MutationResult:
    """
    LIVE -> HISTORICAL.

    Requires an archive. Entering twice is refused so the holding slot is
    never overwritten by archive copies.
    """
    if state.is_archive_mode or state.holding is not None:
        return refuse(state, MutationStatus.REFUSED_READ_ONLY)
    if state.archives is None:
        return refuse(state, MutationStatus.REFUSED_NO_ARCHIVE)

    archive = state.archives
    held = HeldCollections(
        transactions=state.transactions,
        members=state.members,
        activities=state.activities,
    )
    return accept(
        state.evolve(
            holding=held,
            transactions=tuple(
                t.model_copy(update={"is_archived": True}) for t in archive.transactions
            ),
            activities=tuple(
                a.model_copy(update={"is_archived": True}) for a in archive.activities
            ),
            members=archive.members_snapshot,
            mode=LedgerMode.HISTORICAL,
        )
    )


def exit_archive_mode(state: AppState) -> MutationResult:
    """HISTORICAL -> LIVE. Requires the holding slot."""
    if not state.is_archive_mode or state.holding is None:
        return refuse(state, MutationStatus.REFUSED_NO_ARCHIVE)

    held = state.holding
    return accept(
        state.evolve(
            transactions=held.transactions,
            members=held.members,
            activities=held.activities,
            holding=None,
            mode=LedgerMode.LIVE,
        )
    )


def live_collections(state: AppState) -> HeldCollections:
    """The live period data, whether it is displayed or held aside."""
    if state.holding is not None:
        return state.holding
    return HeldCollections(
        transactions=state.transactions,
        members=state.members,
        activities=state.activities,
    )
