"""
Import/Export Codec

Two portable JSON file formats:

1. STANDARD BACKUP
   {transactions, members, categories, activities, archives?, logo?, exportDate}
   Recognised by array-typed ``transactions`` AND ``members``.
   Importing it replaces the whole state.

2. SMART ARCHIVE (the "new-year starter" written by a fiscal year closing)
   {meta, exportDate, logo, categories, carryOverTransaction, activeMembers,
    archiveData: {transactions, activities, membersSnapshot, carryOverSnapshot}}
   Recognised by the meta marker, an ``archiveData`` field or a
   ``carryOverTransaction`` field (checked FIRST, a starter file may also
   carry legacy arrays). Importing it seeds a new period with fallbacks for
   files written by older versions.

DESIGN DECISION: Imports are all-or-nothing. The new state is fully built
and validated before it is returned; on any error the caller keeps its
current state. An imported state always starts in LIVE mode.
"""

import json
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from treasury.ledger.archive_mode import live_collections
from treasury.ledger.closing import SMART_ARCHIVE_META, ClosingPackage
from treasury.ledger.state import AppState, LedgerMode
from treasury.models.ledger import (
    CARRY_OVER_CATEGORY,
    INITIAL_CATEGORIES,
    LEDGER_MODEL_CONFIG,
    Activity,
    Archive,
    Category,
    Member,
    Transaction,
    TransactionType,
)


logger = structlog.get_logger()


BACKUP_FILE_PREFIX = "Sauvegarde_Tresorerie_EC"
CLOSING_FILE_PREFIX = "DEMARRAGE_NOUVELLE_ANNEE"
RECONSTRUCTED_CARRY_OVER_DESCRIPTION = "Report à Nouveau (Reconstitué)"

_TRANSACTIONS = TypeAdapter(tuple[Transaction, ...])
_MEMBERS = TypeAdapter(tuple[Member, ...])
_CATEGORIES = TypeAdapter(tuple[Category, ...])
_ACTIVITIES = TypeAdapter(tuple[Activity, ...])


# =============================================================================
# EXCEPTIONS
# =============================================================================

class CodecError(Exception):
    """Base exception for import/export errors."""
    pass


class ImportParseError(CodecError):
    """The file is not valid JSON."""
    pass


class UnrecognizedFormatError(CodecError):
    """The JSON is neither a standard backup nor a smart archive."""
    pass


# =============================================================================
# MODELS
# =============================================================================

class ImportFormat(str, Enum):
    STANDARD_BACKUP = "standard_backup"
    SMART_ARCHIVE = "smart_archive"


class Backup(BaseModel):
    """A standard backup file."""
    model_config = LEDGER_MODEL_CONFIG

    transactions: tuple[Transaction, ...] = ()
    members: tuple[Member, ...] = ()
    categories: tuple[Category, ...] = ()
    activities: tuple[Activity, ...] = ()
    archives: Optional[Archive] = None
    logo: str = ""
    export_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ImportOutcome(BaseModel):
    """The state an import produces plus what was found in the file."""
    model_config = ConfigDict(frozen=True)

    state: AppState
    format: ImportFormat
    carry_over_amount: Optional[int] = None
    reconstructed_carry_over: bool = False

    @property
    def has_archive(self) -> bool:
        return self.state.archives is not None


# =============================================================================
# EXPORT
# =============================================================================

def build_backup(state: AppState) -> Backup:
    """
    Standard backup of the state.

    While the archive is displayed the LIVE collections (from the holding
    slot) are exported, never the archive copies on screen.
    """
    live = live_collections(state)
    return Backup(
        transactions=live.transactions,
        members=live.members,
        categories=state.categories,
        activities=live.activities,
        archives=state.archives,
        logo=state.logo,
    )


def dump_payload(payload: BaseModel) -> str:
    """Pretty-printed JSON with camelCase keys and accents kept readable."""
    data = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, indent=2, ensure_ascii=False)


def export_file_name(prefix: str, on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"{prefix}_{on.isoformat()}.json"


def write_export(
    directory: Path,
    payload: Union[Backup, ClosingPackage],
    prefix: str,
    on: Optional[date] = None,
) -> Path:
    """Write an export file and return its path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_file_name(prefix, on)
    path.write_text(dump_payload(payload), encoding="utf-8")
    logger.info("export_written", path=str(path), prefix=prefix)
    return path


# =============================================================================
# IMPORT
# =============================================================================

def parse_import(text: str) -> dict[str, Any]:
    """
    Parse an import file.

    Raises:
        ImportParseError: If the text is not valid JSON
        UnrecognizedFormatError: If the JSON is not an object
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportParseError(f"Invalid JSON at line {e.lineno}: {e.msg}")
    if not isinstance(payload, dict):
        raise UnrecognizedFormatError("Top-level JSON value must be an object")
    return payload


def detect_format(payload: dict[str, Any]) -> ImportFormat:
    """Smart archive markers win over the standard backup shape."""
    if (
        payload.get("meta") == SMART_ARCHIVE_META
        or "archiveData" in payload
        or "carryOverTransaction" in payload
    ):
        return ImportFormat.SMART_ARCHIVE
    if isinstance(payload.get("transactions"), list) and isinstance(payload.get("members"), list):
        return ImportFormat.STANDARD_BACKUP
    raise UnrecognizedFormatError("File is neither a backup nor a new-year starter file")


def _reconstructed_carry_over(now: datetime) -> Transaction:
    return Transaction(
        id=f"AUTO_REPORT_{int(now.timestamp() * 1000)}",
        date=now.date(),
        amount=0,
        type=TransactionType.INCOME,
        category=CARRY_OVER_CATEGORY,
        description=RECONSTRUCTED_CARRY_OVER_DESCRIPTION,
        is_archived=False,
    )


def _imported_logo(payload: dict[str, Any], state: AppState) -> str:
    """The file's logo, or the current one when the file has none."""
    logo = payload.get("logo")
    if logo is None or logo == "":
        return state.logo
    if not isinstance(logo, str):
        raise UnrecognizedFormatError("Logo must be a data URI string")
    return logo


def _import_smart_archive(
    state: AppState,
    payload: dict[str, Any],
    now: datetime,
) -> ImportOutcome:
    # A. Carry-over line opening the new period
    raw_carry_over = payload.get("carryOverTransaction")
    if raw_carry_over:
        carry_over = Transaction.model_validate(raw_carry_over).model_copy(
            update={"is_archived": False}
        )
        reconstructed = False
    else:
        carry_over = _reconstructed_carry_over(now)
        reconstructed = True

    # B. Members: reset list, else legacy members with zeroed fees
    if isinstance(payload.get("activeMembers"), list):
        members = _MEMBERS.validate_python(payload["activeMembers"])
    elif isinstance(payload.get("members"), list):
        members = tuple(
            m.model_copy(update={"registration_fee_paid": 0, "is_new_member": False})
            for m in _MEMBERS.validate_python(payload["members"])
        )
    else:
        members = ()

    # C. Categories
    if isinstance(payload.get("categories"), list):
        categories = _CATEGORIES.validate_python(payload["categories"])
    else:
        categories = INITIAL_CATEGORIES

    # D. Archive: stored payload, else synthesised from legacy arrays
    archive = None
    if payload.get("archiveData"):
        archive = Archive.model_validate(payload["archiveData"])
        if archive.carry_over_snapshot is None and raw_carry_over:
            archive = archive.model_copy(update={"carry_over_snapshot": carry_over})
    elif isinstance(payload.get("transactions"), list):
        archive = Archive(
            transactions=tuple(
                t.model_copy(update={"is_archived": True})
                for t in _TRANSACTIONS.validate_python(payload["transactions"])
            ),
            activities=tuple(
                a.model_copy(update={"is_archived": True})
                for a in _ACTIVITIES.validate_python(payload.get("activities") or [])
            ),
            members_snapshot=_MEMBERS.validate_python(payload.get("members") or []),
        )

    next_state = state.evolve(
        transactions=(carry_over,),
        members=members,
        categories=categories,
        activities=(),
        archives=archive,
        holding=None,
        mode=LedgerMode.LIVE,
        logo=_imported_logo(payload, state),
    )
    return ImportOutcome(
        state=next_state,
        format=ImportFormat.SMART_ARCHIVE,
        carry_over_amount=carry_over.amount,
        reconstructed_carry_over=reconstructed,
    )


def _import_standard_backup(state: AppState, payload: dict[str, Any]) -> ImportOutcome:
    archives = payload.get("archives")
    categories = payload.get("categories")
    next_state = state.evolve(
        transactions=_TRANSACTIONS.validate_python(payload["transactions"]),
        members=_MEMBERS.validate_python(payload["members"]),
        categories=(
            INITIAL_CATEGORIES if categories is None else _CATEGORIES.validate_python(categories)
        ),
        activities=_ACTIVITIES.validate_python(payload.get("activities") or []),
        archives=Archive.model_validate(archives) if archives else None,
        holding=None,
        mode=LedgerMode.LIVE,
        logo=_imported_logo(payload, state),
    )
    return ImportOutcome(state=next_state, format=ImportFormat.STANDARD_BACKUP)


def apply_import(
    state: AppState,
    payload: dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> ImportOutcome:
    """
    Build the state an import file produces.

    Raises:
        UnrecognizedFormatError: If the format is unknown or a record in
            the file does not validate
    """
    file_format = detect_format(payload)
    try:
        if file_format == ImportFormat.SMART_ARCHIVE:
            return _import_smart_archive(state, payload, now or datetime.now())
        return _import_standard_backup(state, payload)
    except ValidationError as e:
        raise UnrecognizedFormatError(
            f"Invalid records in {file_format.value} file ({e.error_count()} errors)"
        )
