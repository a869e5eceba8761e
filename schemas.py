from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)

from models import ReportPeriod, TransactionCategory, TransactionType


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def not_null(value):
    if value is None:
        raise ValueError("may be omitted but not null")
    return value


# Stored instants are naive UTC; responses carry the offset explicitly.
UtcDateTime = Annotated[datetime, AfterValidator(aware_utc)]


class UserIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=128)
    email: EmailStr


class UserLookup(BaseModel):
    id: str = Field(..., min_length=1)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    created_at: UtcDateTime
    updated_at: UtcDateTime


class TransactionIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    type: TransactionType
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    category: TransactionCategory
    description: Optional[str] = None
    transaction_date: datetime

    @field_validator("transaction_date")
    @classmethod
    def normalize_transaction_date(cls, value):
        return naive_utc(value)


class TransactionUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    id: int
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=12, decimal_places=2
    )
    category: Optional[TransactionCategory] = None
    description: Optional[str] = None
    transaction_date: Optional[datetime] = None

    @field_validator("type", "amount", "category", "transaction_date", mode="before")
    @classmethod
    def reject_null(cls, value):
        return not_null(value)

    @field_validator("transaction_date")
    @classmethod
    def normalize_transaction_date(cls, value):
        return naive_utc(value)


class TransactionQuery(BaseModel):
    user_id: str = Field(..., min_length=1)
    type: Optional[TransactionType] = None
    category: Optional[TransactionCategory] = None
    limit: Optional[int] = Field(default=None, gt=0)
    offset: Optional[int] = Field(default=None, ge=0)


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    type: TransactionType
    amount: Decimal
    category: TransactionCategory
    description: Optional[str]
    transaction_date: UtcDateTime
    created_at: UtcDateTime
    updated_at: UtcDateTime


class NoteIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    content: str


class NoteUpdate(BaseModel):
    id: int
    title: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = None

    @field_validator("title", "content", mode="before")
    @classmethod
    def reject_null(cls, value):
        return not_null(value)


class NoteQuery(BaseModel):
    user_id: str = Field(..., min_length=1)
    limit: Optional[int] = Field(default=None, gt=0)
    offset: Optional[int] = Field(default=None, ge=0)


class NoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    content: str
    created_at: UtcDateTime
    updated_at: UtcDateTime


class DeleteIn(BaseModel):
    id: int
    user_id: str = Field(..., min_length=1)


class DeleteResult(BaseModel):
    success: bool


class ReportIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    period: ReportPeriod
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_range(cls, value):
        return naive_utc(value)


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period: ReportPeriod
    start_date: UtcDateTime
    end_date: UtcDateTime
    total_income: Decimal
    total_expenses: Decimal
    net_balance: Decimal
    transactions: list[TransactionOut]
    income_by_category: dict[TransactionCategory, Decimal]
    expenses_by_category: dict[TransactionCategory, Decimal]


class DashboardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_balance: Decimal
    total_income: Decimal
    total_expenses: Decimal
    monthly_income: Decimal
    monthly_expenses: Decimal
    recent_transactions: list[TransactionOut] = Field(max_length=5)


class LoginIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=128)
    email: EmailStr


class SessionOut(BaseModel):
    token: str
    user: UserOut
