"""
ExpenditureRepository - persistence for expenditures and their embedded splits.

Every write goes through the split validator before it reaches Mongo, and
every split mutation is a single-document atomic update:

1. mark-paid flips the caller's split with a positional ``splits.$`` update
   that only matches an unpaid split on an unsettled document
2. is_settled is recomputed from the document Mongo returns and written
   with a conditional update that only matches when no split is unpaid

so concurrent flips of different splits on the same bill never lose a write.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.errors import AuthorizationError, NotFoundError
from app.models.base import to_object_id, utcnow
from app.models.expenditure import Expenditure, Split
from app.repositories.expenditure_query import (
    ExpenditureFilter,
    build_expenditure_query,
    statistics_match,
    unsettled_involving_user,
)
from app.schemas.expenditure import (
    AmountSummary,
    CategoryStatistic,
    ExpenditureCreate,
    ExpenditureUpdate,
    MonthStatistic,
    SplitSummary,
    StatisticsResponse,
)
from app.schemas.settlement import SettlementSummaryResponse
from app.services.balance_service import aggregate_balances, summarize_splits
from app.services import settlement_service
from app.services.settlement_service import NOT_FOUND_OR_SETTLED, compute_is_settled
from app.utils.expenditure_validation import validate_amounts, validate_splits

logger = logging.getLogger(__name__)

NOT_FOUND = "Expenditure not found"
OWNER_ONLY = "Only the owner can modify this expenditure"

# Fields that may be null after an update; everything else in the whitelist is required
NULLABLE_UPDATE_FIELDS = {"location"}


def _amount_group(field: str) -> dict:
    return {
        "total_amount": {"$sum": field},
        "avg_amount": {"$avg": field},
        "max_amount": {"$max": field},
        "min_amount": {"$min": field},
        "count": {"$sum": 1}
    }


def _to_summary(rows: List[dict]) -> AmountSummary:
    if not rows:
        return AmountSummary()
    row = rows[0]
    return AmountSummary(
        total_amount=row.get("total_amount") or 0,
        avg_amount=row.get("avg_amount") or 0,
        max_amount=row.get("max_amount") or 0,
        min_amount=row.get("min_amount") or 0,
        count=row.get("count") or 0
    )


class ExpenditureRepository:
    """Expenditure database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["expenditures"]

    async def create_expenditure(self, data: ExpenditureCreate, owner_id: str) -> Expenditure:
        """Create an expenditure paid by its owner. Splits are validated before insert."""
        owner_oid = ObjectId(owner_id)

        splits = [
            Split(user_id=ObjectId(split.user_id), amount=split.amount, paid=split.paid)
            for split in data.splits
        ]
        total_amount = data.total_amount if data.total_amount is not None else data.amount

        validate_amounts(data.amount, total_amount, splits)
        validate_splits(splits, total_amount)

        now = utcnow()
        expenditure = Expenditure(
            user_id=owner_oid,
            amount=data.amount,
            category=data.category,
            description=data.description,
            date=data.date,
            payment_method=data.payment_method,
            tags=data.tags,
            location=data.location,
            total_amount=total_amount,
            paid_by=owner_oid,
            is_settled=compute_is_settled(splits, data.is_settled),
            splits=splits,
            created_at=now,
            updated_at=now
        )

        await self.collection.insert_one(expenditure.to_document())
        logger.info(
            "Created expenditure %s for user %s (%d splits)",
            expenditure.id, owner_id, len(splits)
        )
        return expenditure

    async def get_expenditure(self, expenditure_id: str, user_id: str) -> Expenditure:
        """Get an expenditure the user owns, paid for, or holds a split on."""
        expenditure = await self._find(expenditure_id)
        if expenditure is None or not expenditure.involves(ObjectId(user_id)):
            raise NotFoundError(NOT_FOUND)
        return expenditure

    async def list_expenditures(
        self,
        filters: ExpenditureFilter,
        user_id: str
    ) -> Tuple[List[Expenditure], int, AmountSummary]:
        """Page slice (newest first), total match count and amount summary over all matches."""
        query = build_expenditure_query(filters, ObjectId(user_id))

        cursor = (
            self.collection.find(query)
            .sort("date", -1)
            .skip(filters.skip)
            .limit(filters.limit)
        )
        docs, total, summary_rows = await asyncio.gather(
            cursor.to_list(length=filters.limit),
            self.collection.count_documents(query),
            self.collection.aggregate([
                {"$match": query},
                {"$group": {"_id": None, **_amount_group("$total_amount")}}
            ]).to_list(length=1)
        )

        return [Expenditure(**doc) for doc in docs], total, _to_summary(summary_rows)

    async def find_unsettled_for_user(self, user_id: str) -> List[Expenditure]:
        """Unsettled expenditures where the user is payer or split participant."""
        docs = await self.collection.find(
            unsettled_involving_user(ObjectId(user_id))
        ).to_list(length=None)
        return [Expenditure(**doc) for doc in docs]

    async def get_split_summary(self, user_id: str) -> SplitSummary:
        expenditures = await self.find_unsettled_for_user(user_id)
        return summarize_splits(expenditures, ObjectId(user_id))

    async def get_settlement_summary(self, user_id: str) -> SettlementSummaryResponse:
        expenditures = await self.find_unsettled_for_user(user_id)
        return aggregate_balances(expenditures, ObjectId(user_id))

    async def get_statistics(
        self,
        user_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> StatisticsResponse:
        """Overall, per-category and per-month totals over the user's own expenditures."""
        match = {"$match": statistics_match(ObjectId(user_id), start_date, end_date)}

        overall_rows, category_rows, month_rows = await asyncio.gather(
            self.collection.aggregate([
                match,
                {"$group": {"_id": None, **_amount_group("$amount")}}
            ]).to_list(length=1),
            self.collection.aggregate([
                match,
                {"$group": {
                    "_id": "$category",
                    "total_amount": {"$sum": "$amount"},
                    "count": {"$sum": 1}
                }},
                {"$sort": {"total_amount": -1}}
            ]).to_list(length=None),
            self.collection.aggregate([
                match,
                {"$group": {
                    "_id": {"year": {"$year": "$date"}, "month": {"$month": "$date"}},
                    "total_amount": {"$sum": "$amount"},
                    "count": {"$sum": 1}
                }},
                {"$sort": {"_id.year": -1, "_id.month": -1}}
            ]).to_list(length=None)
        )

        return StatisticsResponse(
            overall=_to_summary(overall_rows),
            by_category=[
                CategoryStatistic(
                    category=row["_id"],
                    total_amount=row["total_amount"],
                    count=row["count"]
                )
                for row in category_rows
            ],
            by_month=[
                MonthStatistic(
                    year=row["_id"]["year"],
                    month=row["_id"]["month"],
                    total_amount=row["total_amount"],
                    count=row["count"]
                )
                for row in month_rows
            ]
        )

    async def update_expenditure(
        self,
        expenditure_id: str,
        user_id: str,
        update_data: ExpenditureUpdate
    ) -> Expenditure:
        """Apply a whitelisted field update (owner only)."""
        expenditure = await self._get_owned(expenditure_id, user_id)

        changes = {
            field: value
            for field, value in update_data.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_UPDATE_FIELDS
        }
        if not changes:
            return expenditure

        # An unsplit expenditure's total follows its amount
        if "amount" in changes and not expenditure.splits:
            changes["total_amount"] = changes["amount"]

        merged = expenditure.model_copy(update=changes)
        validate_amounts(merged.amount, merged.total_amount, merged.splits)
        validate_splits(merged.splits, merged.total_amount)

        changes["updated_at"] = utcnow()
        result = await self.collection.find_one_and_update(
            {"_id": expenditure.id, "user_id": expenditure.user_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise NotFoundError(NOT_FOUND)
        return Expenditure(**result)

    async def delete_expenditure(self, expenditure_id: str, user_id: str) -> None:
        """Hard delete (owner only)."""
        expenditure = await self._get_owned(expenditure_id, user_id)

        result = await self.collection.delete_one(
            {"_id": expenditure.id, "user_id": expenditure.user_id}
        )
        if result.deleted_count == 0:
            raise NotFoundError(NOT_FOUND)
        logger.info("Deleted expenditure %s", expenditure_id)

    async def mark_split_paid(self, expenditure_id: str, user_id: str) -> Expenditure:
        """
        Mark the caller's split as paid and settle the expenditure when it was the last one.

        Raises NotFoundError for unknown/settled expenditures and for callers
        without an unpaid split on it.
        """
        oid = to_object_id(expenditure_id)
        if oid is None:
            raise NotFoundError(NOT_FOUND_OR_SETTLED)
        user_oid = ObjectId(user_id)

        doc = await self.collection.find_one({"_id": oid, "is_settled": False})
        if doc is None:
            raise NotFoundError(NOT_FOUND_OR_SETTLED)
        loaded = Expenditure(**doc)
        # Strangers get the same answer as for a missing id
        if not loaded.involves(user_oid):
            raise NotFoundError(NOT_FOUND_OR_SETTLED)

        now = utcnow()
        # Validates the transition on the loaded copy (raises on a paid or missing split)
        settlement_service.mark_split_paid(loaded, user_oid, now)

        result = await self.collection.find_one_and_update(
            {
                "_id": oid,
                "is_settled": False,
                "splits": {"$elemMatch": {"user_id": user_oid, "paid": False}}
            },
            {"$set": {
                "splits.$.paid": True,
                "splits.$.settled_at": now,
                "updated_at": now
            }},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise NotFoundError(NOT_FOUND_OR_SETTLED)

        expenditure = Expenditure(**result)
        if not expenditure.is_settled and compute_is_settled(expenditure.splits):
            settled = await self.collection.find_one_and_update(
                {"_id": oid, "splits.paid": {"$ne": False}},
                {"$set": {"is_settled": True, "updated_at": now}},
                return_document=ReturnDocument.AFTER
            )
            if settled is not None:
                expenditure = Expenditure(**settled)
                logger.info("Expenditure %s settled", expenditure_id)

        logger.info("User %s marked split paid on expenditure %s", user_id, expenditure_id)
        return expenditure

    # ===== PRIVATE HELPERS =====

    async def _find(self, expenditure_id: str) -> Optional[Expenditure]:
        oid = to_object_id(expenditure_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        if doc is None:
            return None
        return Expenditure(**doc)

    async def _get_owned(self, expenditure_id: str, user_id: str) -> Expenditure:
        """
        Load an expenditure for an owner-only operation.

        Participants who can already see it get AuthorizationError; anyone
        else gets the same NotFoundError as for a missing id.
        """
        expenditure = await self._find(expenditure_id)
        user_oid = ObjectId(user_id)
        if expenditure is None:
            raise NotFoundError(NOT_FOUND)
        if expenditure.user_id != user_oid:
            if expenditure.involves(user_oid):
                raise AuthorizationError(OWNER_ONLY)
            raise NotFoundError(NOT_FOUND)
        return expenditure
