"""
Translate expenditure list filters into Mongo filter documents.

A record matches iff it is visible to the caller (owner or split participant)
and satisfies every filter that was provided.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, Field

from app.core.config import settings
from app.models.expenditure import Category


class SplitType(str, Enum):
    PAID = "paid"   # caller fronted the bill
    OWED = "owed"   # caller holds a split on someone else's bill
    ALL = "all"


class ExpenditureFilter(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category: Optional[Category] = None
    tag: Optional[str] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    split_type: SplitType = SplitType.ALL
    is_settled: Optional[bool] = None

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _range(lower: Any, upper: Any) -> Optional[Dict[str, Any]]:
    if lower is None and upper is None:
        return None
    bounds = {}
    if lower is not None:
        bounds["$gte"] = lower
    if upper is not None:
        bounds["$lte"] = upper
    return bounds


def involving_user(user_id: ObjectId) -> Dict[str, Any]:
    """Expenditures the user owns or holds a split on."""
    return {
        "$or": [
            {"user_id": user_id},
            {"splits.user_id": user_id}
        ]
    }


def unsettled_involving_user(user_id: ObjectId) -> Dict[str, Any]:
    """Input set of the balance aggregator: unsettled, caller is payer or participant."""
    return {
        "is_settled": False,
        "$or": [
            {"paid_by": user_id},
            {"splits.user_id": user_id}
        ]
    }


def build_expenditure_query(filters: ExpenditureFilter, user_id: ObjectId) -> Dict[str, Any]:
    query = involving_user(user_id)

    date_range = _range(filters.start_date, filters.end_date)
    if date_range:
        query["date"] = date_range

    if filters.category is not None:
        query["category"] = filters.category.value
    if filters.tag:
        query["tags"] = filters.tag

    amount_range = _range(filters.min_amount, filters.max_amount)
    if amount_range:
        query["total_amount"] = amount_range

    if filters.split_type == SplitType.PAID:
        query["paid_by"] = user_id
    elif filters.split_type == SplitType.OWED:
        query["splits.user_id"] = user_id
        query["paid_by"] = {"$ne": user_id}

    if filters.is_settled is not None:
        query["is_settled"] = filters.is_settled

    return query


def statistics_match(
    user_id: ObjectId,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> Dict[str, Any]:
    """Statistics only cover expenditures the caller recorded."""
    query: Dict[str, Any] = {"user_id": user_id}
    date_range = _range(start_date, end_date)
    if date_range:
        query["date"] = date_range
    return query
