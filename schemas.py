import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from periods import parse_record_date


def _to_float(value: object) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _checked_date(value: str) -> str:
    parse_record_date(value)
    return value


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class RecurringScope(str, Enum):
    single = "single"
    future = "future"
    series = "series"


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CategoryRef(ApiModel):
    id: Optional[int] = None
    name: str
    emoji: str = ""
    color: str = "#94A3B8"


class SubcategoryRef(ApiModel):
    id: Optional[int] = None
    name: str


class TransactionRecord(ApiModel):
    id: Optional[int] = None
    type: TransactionType
    amount: float = 0.0
    date: str
    category: Optional[CategoryRef] = None
    subcategory: Optional[SubcategoryRef] = None
    wallet_id: Optional[int] = Field(default=None, alias="walletId")
    is_recurring: Optional[bool] = Field(default=False, alias="isRecurring")
    parent_id: Optional[int] = Field(default=None, alias="parentId")
    exclude_from_stats: Optional[bool] = Field(default=False, alias="excludeFromStats")
    active: Optional[bool] = True
    note: Optional[str] = None
    description: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> float:
        return _to_float(value)

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return _checked_date(value)


class CategoryAggregate(BaseModel):
    name: str
    emoji: str
    color: str
    amount: float = 0.0
    count: int = 0


class CategoryBreakdown(BaseModel):
    incomes: list[CategoryAggregate] = Field(default_factory=list)
    expenses: list[CategoryAggregate] = Field(default_factory=list)


class PeriodSummary(BaseModel):
    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    savings_rate: float = 0.0
    uncategorized_income: float = 0.0
    uncategorized_expenses: float = 0.0


class BarPoint(BaseModel):
    display: float
    real: float


class PieSlice(BaseModel):
    label: str
    value: float
    real_value: float
    color: str
    percent: float = 0.0


class ManualMonthRow(ApiModel):
    """Manual override row as served by ``/manual-month`` (``month`` is 0-11)."""

    year: int
    month: int = Field(..., ge=0, le=11)
    income: Optional[float] = None
    expense: Optional[float] = None
    final_balance: Optional[float] = Field(default=None, alias="finalBalance")

    def has_values(self) -> bool:
        return (
            self.income is not None
            or self.expense is not None
            or self.final_balance is not None
        )


class MonthSummary(BaseModel):
    year: int
    month: int
    month_name: str
    income: float = 0.0
    expense: float = 0.0
    saving: float = 0.0
    final_amount: float = 0.0
    finished: bool = False
    has_override: bool = False


class YearSummary(BaseModel):
    year: int
    income: float = 0.0
    expense: float = 0.0
    saving: float = 0.0
    final_amount: float = 0.0
    finished: bool = False


class WealthPoint(BaseModel):
    year: int
    month: int
    label: str
    final_amount: float


class SeriesPoint(ApiModel):
    date: str
    value: float = 0.0

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: object) -> float:
        return _to_float(value)

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return _checked_date(value)


class TimelinePoint(ApiModel):
    date: str
    equity: Optional[float] = None
    total_current_value: Optional[float] = Field(
        default=None, alias="totalCurrentValue"
    )
    net_contributions: Optional[float] = Field(default=None, alias="netContributions")

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return _checked_date(value)


class AssetSummary(ApiModel):
    id: int
    name: str = ""
    symbol: Optional[str] = None
    currency: str = "EUR"
    invested: Optional[float] = None
    current_value: Optional[float] = Field(default=None, alias="currentValue")
    pnl: Optional[float] = None
    last_valuation_date: Optional[str] = Field(default=None, alias="lastValuationDate")


class TransactionPrefill(ApiModel):
    wallet_id: Optional[int] = Field(default=None, alias="walletId")
    type: Optional[TransactionType] = None
    date: Optional[str] = None
    asset_id: Optional[int] = Field(default=None, alias="assetId")


class TransactionIn(ApiModel):
    type: TransactionType
    amount: float = Field(..., gt=0)
    date: dt.date
    wallet_id: int = Field(..., alias="walletId")
    to_wallet_id: Optional[int] = Field(default=None, alias="toWalletId")
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    subcategory_id: Optional[int] = Field(default=None, alias="subcategoryId")
    currency: str = Field(default="EUR", pattern=r"^[A-Z]{3}$")
    note: Optional[str] = Field(default=None, max_length=200)
    is_recurring: bool = Field(default=False, alias="isRecurring")
    exclude_from_stats: bool = Field(default=False, alias="excludeFromStats")

    def to_api(self) -> dict[str, object]:
        payload = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        return payload


class ManualMonthIn(ApiModel):
    year: int = Field(..., ge=1970, le=3000)
    month: int = Field(..., ge=0, le=11)
    income: Optional[float] = Field(default=None, ge=0)
    expense: Optional[float] = Field(default=None, ge=0)
    final_balance: Optional[float] = Field(default=None, alias="finalBalance")
