from datetime import datetime
from typing import Annotated, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.base import utcnow
from app.models.expenditure import Category, PaymentMethod

Tag = Annotated[str, Field(max_length=20)]


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class SplitBase(CamelModel):
    user_id: str = Field(alias="user")
    amount: float = Field(ge=0)
    paid: bool = False

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: str) -> str:
        if not ObjectId.is_valid(value):
            raise ValueError("Invalid user id")
        return value


class ExpenditureBase(CamelModel):
    amount: float = Field(gt=0)
    category: Category
    description: str = Field(min_length=1, max_length=500)
    date: datetime = Field(default_factory=utcnow)
    payment_method: PaymentMethod
    tags: List[Tag] = []
    location: Optional[str] = Field(default=None, max_length=100)

    @field_validator("description", "location", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class ExpenditureCreate(ExpenditureBase):
    total_amount: Optional[float] = Field(default=None, ge=0)
    splits: List[SplitBase] = []
    # Only honoured when there are no splits; otherwise derived
    is_settled: bool = False


class ExpenditureUpdate(CamelModel):
    """Owner field update. Anything outside this whitelist is rejected."""
    amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[Category] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    tags: Optional[List[Tag]] = None
    location: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    @field_validator("description", "location", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class SplitResponse(SplitBase):
    settled_at: Optional[datetime] = None


class ExpenditureResponse(CamelModel):
    id: str
    user_id: str = Field(alias="user")
    amount: float
    category: Category
    description: str
    date: datetime
    payment_method: PaymentMethod
    tags: List[str]
    location: Optional[str] = None
    total_amount: float
    paid_by: str
    is_settled: bool
    splits: List[SplitResponse]
    created_at: datetime
    updated_at: datetime


class Pagination(CamelModel):
    total: int
    page: int
    pages: int
    has_more: bool


class AmountSummary(CamelModel):
    total_amount: float = 0
    avg_amount: float = 0
    max_amount: float = 0
    min_amount: float = 0
    count: int = 0


class SplitSummary(CamelModel):
    total_paid: float = 0
    total_owed: float = 0
    balance: float = 0


class ExpenditureListResponse(CamelModel):
    expenditures: List[ExpenditureResponse]
    pagination: Pagination
    summary: AmountSummary
    split_summary: SplitSummary


class CategoryStatistic(CamelModel):
    category: str
    total_amount: float
    count: int


class MonthStatistic(CamelModel):
    year: int
    month: int
    total_amount: float
    count: int


class StatisticsResponse(CamelModel):
    overall: AmountSummary
    by_category: List[CategoryStatistic]
    by_month: List[MonthStatistic]
