"""
Expenditure model - one recorded expense, optionally split among participants.

Stored in the ``expenditures`` collection with snake_case keys. Splits are
embedded values owned by their expenditure; they have no id of their own.

Invariants:
- non-empty splits sum to total_amount (within SPLIT_TOLERANCE)
- is_settled == all(split.paid) whenever splits is non-empty
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict

from app.models.base import MongoModel, PyObjectId, utcnow


class Category(str, Enum):
    FOOD = "food"
    TRANSPORTATION = "transportation"
    HOUSING = "housing"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    EDUCATION = "education"
    PERSONAL_CARE = "personal_care"
    DEBT_PAYMENTS = "debt_payments"
    SAVINGS = "savings"
    GIFTS = "gifts"
    OTHER = "other"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


# Embedded documents don't need MongoModel (no separate _id)
class Split(BaseModel):
    user_id: PyObjectId
    amount: float
    paid: bool = False
    settled_at: Optional[datetime] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Expenditure(MongoModel):
    user_id: PyObjectId   # Owner (who recorded it)
    amount: float
    category: Category
    description: str
    date: datetime = Field(default_factory=utcnow)
    payment_method: PaymentMethod
    tags: List[str] = []
    location: Optional[str] = None

    total_amount: float
    paid_by: PyObjectId   # Who fronted the bill
    is_settled: bool = False
    splits: List[Split] = []

    model_config = ConfigDict(use_enum_values=True)

    def split_for(self, user_id: ObjectId) -> Optional[Split]:
        """The split owed by user_id, if any (first match)."""
        for split in self.splits:
            if split.user_id == user_id:
                return split
        return None

    def involves(self, user_id: ObjectId) -> bool:
        """Owner, payer or split participant."""
        return (
            self.user_id == user_id
            or self.paid_by == user_id
            or self.split_for(user_id) is not None
        )

    def to_document(self) -> dict:
        """Mongo document for insert."""
        return self.model_dump(by_alias=True)
