"""
Core Data Models for Treasury Ledger

These models define the strict schemas for all data flowing through the
ledger: transactions, members, activities, categories and the frozen
archive of a closed fiscal year.

DESIGN DECISION: Field names are snake_case in Python but serialize to the
camelCase keys of the saved files (``registrationFeePaid``, ``isArchived``,
...). Files written by older installations load unchanged and files we
write can be read back by them.

All entities are frozen. The ledger never edits a record in place; it
builds a new one with ``model_copy(update=...)``.
"""

from datetime import date
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# CONSTANTS
# =============================================================================

# Distinguished category names. Transactions reference categories by name.
INSCRIPTIONS_CATEGORY = "Inscriptions"
CARRY_OVER_CATEGORY = "Report à Nouveau"
ACTIVITY_CATEGORY = "Activités (Sorties, Rentrée, AG)"

# Registration fee tiers for choir children (FCFA)
NEW_MEMBER_FEE = 5000
RETURNING_MEMBER_FEE = 2500

CHOIR_GRADES = (
    "Samuel",
    "Tarcicius",
    "Céroféraire A",
    "Céroféraire B",
    "Acolyte A",
    "Acolyte B",
    "Acolyte C",
    "Thuriféraire A",
    "Thuriféraire B",
    "Cérémoniaire",
)


# Alias for fields that are themselves called ``date`` and carry a default
CalendarDate = date

# Raw keys (field name or alias) reset on a responsible adult's draft
_ADULT_RESET_KEYS = {
    "is_new_member", "isNewMember",
    "registration_fee_paid", "registrationFeePaid",
}


def generate_id() -> str:
    """Return a fresh identifier for a ledger entity."""
    return uuid4().hex[:12]


LEDGER_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="ignore",
    str_strip_whitespace=True,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a cash movement.

    The values are the labels stored in saved files.
    """
    INCOME = "RECETTE"
    EXPENSE = "DEPENSE"


class MemberRole(str, Enum):
    """
    Member roles.

    Only choir children pay a registration fee. Every other role is a
    responsible adult.
    """
    PREMIER_RESPONSABLE = "Premier Responsable"
    RESPONSABLE_TRESORIER = "Responsable Trésorier"
    RESPONSABLE_SECRETAIRE = "Responsable Secrétaire"
    RESPONSABLE = "Responsable"
    CHOIR_CHILD = "Enfant de Chœur"

    @property
    def is_choir_child(self) -> bool:
        return self is MemberRole.CHOIR_CHILD


class AppTheme(str, Enum):
    """Display theme preference."""
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Transaction(BaseModel):
    """
    A single cash movement.

    ``member_id`` is set for registration fees and activity participation.
    ``activity_id`` is set for anything tied to an event.
    ``is_archived`` marks lines of a closed fiscal year; those are never
    edited or deleted by normal operations.
    """
    model_config = LEDGER_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    date: date
    amount: int = Field(
        ...,
        ge=0,
        description="Amount in FCFA (no decimal subdivision)"
    )
    type: TransactionType
    category: str = Field(
        ...,
        min_length=1,
        description="Name of the category this line is filed under"
    )
    description: str = ""
    member_id: Optional[str] = None
    activity_id: Optional[str] = None
    is_archived: Optional[bool] = None

    @property
    def signed_amount(self) -> int:
        """Amount with the sign of its effect on the balance."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    @property
    def is_registration(self) -> bool:
        return self.category == INSCRIPTIONS_CATEGORY and self.member_id is not None


class Member(BaseModel):
    """
    A choir child or a responsible adult.

    ``registration_fee_paid`` is the running total paid toward the expected
    fee and is kept in sync with the member's "Inscriptions" transaction.
    """
    model_config = LEDGER_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: MemberRole
    phone: Optional[str] = None
    grade: Optional[str] = Field(
        default=None,
        description="Choir grade, only meaningful for choir children"
    )
    is_new_member: bool = False
    registration_fee_paid: int = Field(default=0, ge=0)
    monthly_dues_paid: Optional[bool] = None

    @property
    def full_name(self) -> str:
        """Display name, family name first."""
        return f"{self.last_name} {self.first_name}"


class Activity(BaseModel):
    """An event with one price for children and one for responsible adults."""
    model_config = LEDGER_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    date: date
    location: str = ""
    cost_child: int = Field(default=0, ge=0)
    cost_responsable: int = Field(default=0, ge=0)
    is_archived: Optional[bool] = None


class Category(BaseModel):
    """A labeling entry of the income/expense taxonomy."""
    model_config = LEDGER_MODEL_CONFIG

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: str = ""


class Archive(BaseModel):
    """
    Frozen snapshot of a closed fiscal year.

    ``members_snapshot`` is the member list as it was BEFORE the closing
    reset, so historical fee status stays inspectable.
    """
    model_config = LEDGER_MODEL_CONFIG

    transactions: tuple[Transaction, ...] = ()
    activities: tuple[Activity, ...] = ()
    members_snapshot: tuple[Member, ...] = ()
    carry_over_snapshot: Optional[Transaction] = None


# =============================================================================
# INTENT PAYLOADS (what a form submits)
# =============================================================================

class TransactionDraft(BaseModel):
    """A transaction before it receives its identifier."""
    model_config = LEDGER_MODEL_CONFIG

    date: date
    amount: int = Field(..., ge=0)
    type: TransactionType
    category: str = Field(..., min_length=1)
    description: str = ""
    member_id: Optional[str] = None
    activity_id: Optional[str] = None


class MemberDraft(BaseModel):
    """
    A member before it receives its identifier.

    Responsible adults pay no registration fee and are never "new": both
    fields are reset whatever the form sent.
    """
    model_config = LEDGER_MODEL_CONFIG

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: MemberRole = MemberRole.CHOIR_CHILD
    phone: Optional[str] = None
    grade: Optional[str] = None
    is_new_member: bool = False
    registration_fee_paid: int = Field(default=0, ge=0)
    monthly_dues_paid: Optional[bool] = False

    @model_validator(mode="before")
    @classmethod
    def responsible_adults_pay_nothing(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("role", MemberRole.CHOIR_CHILD) == MemberRole.CHOIR_CHILD:
            return data
        data = {k: v for k, v in data.items() if k not in _ADULT_RESET_KEYS}
        data.update(is_new_member=False, registration_fee_paid=0)
        return data


class MemberUpdate(BaseModel):
    """
    Partial member update.

    Only the fields explicitly set are merged (``exclude_unset``).
    """
    model_config = LEDGER_MODEL_CONFIG

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[MemberRole] = None
    phone: Optional[str] = None
    grade: Optional[str] = None
    is_new_member: Optional[bool] = None
    registration_fee_paid: Optional[int] = Field(default=None, ge=0)
    monthly_dues_paid: Optional[bool] = None


class ActivityDraft(BaseModel):
    """An activity before it receives its identifier."""
    model_config = LEDGER_MODEL_CONFIG

    name: str = Field(..., min_length=1, max_length=200)
    date: date
    location: str = ""
    cost_child: int = Field(default=0, ge=0)
    cost_responsable: int = Field(default=0, ge=0)


class ActivityUpdate(BaseModel):
    """Partial activity update."""
    model_config = LEDGER_MODEL_CONFIG

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[CalendarDate] = None
    location: Optional[str] = None
    cost_child: Optional[int] = Field(default=None, ge=0)
    cost_responsable: Optional[int] = Field(default=None, ge=0)


class CategoryDraft(BaseModel):
    """A category before it receives its identifier."""
    model_config = LEDGER_MODEL_CONFIG

    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: str = ""


class CategoryUpdate(BaseModel):
    """Partial category update."""
    model_config = LEDGER_MODEL_CONFIG

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[TransactionType] = None
    color: Optional[str] = None


# =============================================================================
# DEFAULT TAXONOMY
# =============================================================================

INITIAL_CATEGORIES: tuple[Category, ...] = (
    # System category used by the fiscal year closing
    Category(
        id="sys_report",
        name=CARRY_OVER_CATEGORY,
        type=TransactionType.INCOME,
        color="bg-yellow-100 text-yellow-800",
    ),
    # Income
    Category(id="inc1", name=INSCRIPTIONS_CATEGORY, type=TransactionType.INCOME, color="bg-green-100 text-green-800"),
    Category(id="inc2", name=ACTIVITY_CATEGORY, type=TransactionType.INCOME, color="bg-blue-100 text-blue-800"),
    Category(id="inc3", name="Dons", type=TransactionType.INCOME, color="bg-emerald-100 text-emerald-800"),
    # Expenses
    Category(id="exp1", name="Achats (Livrets)", type=TransactionType.EXPENSE, color="bg-purple-100 text-purple-800"),
    Category(id="exp2", name="Paiements divers", type=TransactionType.EXPENSE, color="bg-orange-100 text-orange-800"),
    Category(id="exp3", name="Transport", type=TransactionType.EXPENSE, color="bg-red-100 text-red-800"),
)
