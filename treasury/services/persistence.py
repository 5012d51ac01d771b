"""
Persistence Adapter

Maps the application state to and from the blob store, one JSON blob per
logical key:

    transactions, members, categories, activities  -> JSON arrays
    archives                                       -> JSON object, removed when empty
    app_logo, theme                                -> plain strings

RECOVERY POLICY:
- Reading: every key is loaded on its own. An absent, unreadable or
  corrupt blob falls back to its default and is reported; it never stops
  the other keys from loading.
- Writing: a failed write (quota exceeded, I/O error) is reported and the
  previous blob stays in place. The in-memory state remains authoritative.

While the archive is displayed the three period collections are NOT
written, so the saved live data is never replaced by archive copies.
"""

from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from treasury.ledger.state import AppState
from treasury.models.ledger import (
    INITIAL_CATEGORIES,
    Activity,
    AppTheme,
    Archive,
    Category,
    Member,
    Transaction,
)
from treasury.services.storage import BlobStoreInterface, StorageError


logger = structlog.get_logger()


# Storage keys
TRANSACTIONS_KEY = "transactions"
MEMBERS_KEY = "members"
CATEGORIES_KEY = "categories"
ACTIVITIES_KEY = "activities"
ARCHIVES_KEY = "archives"
LOGO_KEY = "app_logo"
THEME_KEY = "theme"

PERIOD_KEYS = (TRANSACTIONS_KEY, MEMBERS_KEY, ACTIVITIES_KEY)

_TRANSACTIONS = TypeAdapter(tuple[Transaction, ...])
_MEMBERS = TypeAdapter(tuple[Member, ...])
_CATEGORIES = TypeAdapter(tuple[Category, ...])
_ACTIVITIES = TypeAdapter(tuple[Activity, ...])
_ARCHIVE = TypeAdapter(Archive)


class LoadReport(BaseModel):
    """Keys that fell back to their default while loading."""

    failed_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Key -> reason it could not be loaded"
    )

    @property
    def clean(self) -> bool:
        return not self.failed_keys


class SaveReport(BaseModel):
    """Outcome of one save."""

    written: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(
        default_factory=list,
        description="Period keys not written because the archive is displayed"
    )
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _encode(adapter: TypeAdapter, value: Any) -> str:
    return adapter.dump_json(value, by_alias=True, exclude_none=True).decode("utf-8")


def _load_json(
    store: BlobStoreInterface,
    key: str,
    adapter: TypeAdapter,
    default: Any,
    report: LoadReport,
) -> Any:
    try:
        raw = store.get(key)
    except StorageError as e:
        logger.warning("blob_read_failed", key=key, error=str(e))
        report.failed_keys[key] = str(e)
        return default

    if raw is None or raw == "":
        return default

    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning("blob_corrupt", key=key, errors=e.error_count())
        report.failed_keys[key] = f"invalid content ({e.error_count()} errors)"
        return default


def load_state(store: BlobStoreInterface) -> tuple[AppState, LoadReport]:
    """
    Rebuild the state from the store.

    Always starts in LIVE mode with an empty holding slot.
    """
    report = LoadReport()

    transactions = _load_json(store, TRANSACTIONS_KEY, _TRANSACTIONS, (), report)
    members = _load_json(store, MEMBERS_KEY, _MEMBERS, (), report)
    categories = _load_json(store, CATEGORIES_KEY, _CATEGORIES, INITIAL_CATEGORIES, report)
    activities = _load_json(store, ACTIVITIES_KEY, _ACTIVITIES, (), report)
    archives = _load_json(store, ARCHIVES_KEY, _ARCHIVE, None, report)

    try:
        logo = store.get(LOGO_KEY) or ""
    except StorageError as e:
        report.failed_keys[LOGO_KEY] = str(e)
        logo = ""

    theme = AppTheme.SYSTEM
    try:
        raw_theme = store.get(THEME_KEY)
    except StorageError as e:
        report.failed_keys[THEME_KEY] = str(e)
        raw_theme = None
    if raw_theme:
        try:
            theme = AppTheme(raw_theme.strip())
        except ValueError:
            report.failed_keys[THEME_KEY] = f"unknown theme {raw_theme!r}"

    state = AppState(
        transactions=transactions,
        members=members,
        categories=categories,
        activities=activities,
        archives=archives,
        logo=logo,
        theme=theme,
    )
    logger.info(
        "state_loaded",
        transactions=len(state.transactions),
        members=len(state.members),
        activities=len(state.activities),
        has_archive=state.archives is not None,
        failed_keys=sorted(report.failed_keys),
    )
    return state, report


def _write(
    store: BlobStoreInterface,
    key: str,
    value: Optional[str],
    report: SaveReport,
) -> None:
    """Write ``value`` under ``key``, or remove the key when value is None."""
    try:
        if value is None:
            store.remove(key)
            report.removed.append(key)
        else:
            store.set(key, value)
            report.written.append(key)
    except StorageError as e:
        logger.error("blob_write_failed", key=key, error=str(e))
        report.failed[key] = str(e)


def save_state(store: BlobStoreInterface, state: AppState) -> SaveReport:
    """
    Persist the state, key by key.

    Never raises for storage failures; check ``SaveReport.failed``.
    """
    report = SaveReport()

    if state.is_archive_mode:
        report.skipped.extend(PERIOD_KEYS)
    else:
        _write(store, TRANSACTIONS_KEY, _encode(_TRANSACTIONS, state.transactions), report)
        _write(store, MEMBERS_KEY, _encode(_MEMBERS, state.members), report)
        _write(store, ACTIVITIES_KEY, _encode(_ACTIVITIES, state.activities), report)

    _write(store, CATEGORIES_KEY, _encode(_CATEGORIES, state.categories), report)
    _write(
        store,
        ARCHIVES_KEY,
        _encode(_ARCHIVE, state.archives) if state.archives is not None else None,
        report,
    )
    _write(store, LOGO_KEY, state.logo or None, report)
    _write(store, THEME_KEY, state.theme.value, report)

    return report
