import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_user
from app.core.config import settings
from app.db.mongo import get_db
from app.models.expenditure import Category, Expenditure
from app.models.user import UserResponse
from app.repositories.expenditure_query import ExpenditureFilter, SplitType
from app.repositories.expenditure_repo import ExpenditureRepository
from app.schemas.expenditure import (
    ExpenditureCreate,
    ExpenditureListResponse,
    ExpenditureResponse,
    ExpenditureUpdate,
    Pagination,
    StatisticsResponse,
)
from app.schemas.settlement import SettlementSummaryResponse

router = APIRouter(prefix="/expenditures", tags=["expenditures"])


def _to_expenditure_response(expenditure: Expenditure) -> ExpenditureResponse:
    """Convert Expenditure model to ExpenditureResponse schema."""
    return ExpenditureResponse(
        id=str(expenditure.id),
        user_id=str(expenditure.user_id),
        amount=expenditure.amount,
        category=expenditure.category,
        description=expenditure.description,
        date=expenditure.date,
        payment_method=expenditure.payment_method,
        tags=expenditure.tags,
        location=expenditure.location,
        total_amount=expenditure.total_amount,
        paid_by=str(expenditure.paid_by),
        is_settled=expenditure.is_settled,
        splits=[
            {
                "user_id": str(split.user_id),
                "amount": split.amount,
                "paid": split.paid,
                "settled_at": split.settled_at
            }
            for split in expenditure.splits
        ],
        created_at=expenditure.created_at,
        updated_at=expenditure.updated_at
    )


def expenditure_filters(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    category: Optional[Category] = None,
    tag: Optional[str] = None,
    min_amount: Optional[float] = Query(None, alias="minAmount"),
    max_amount: Optional[float] = Query(None, alias="maxAmount"),
    split_type: SplitType = Query(SplitType.ALL, alias="splitType"),
    is_settled: Optional[bool] = Query(None, alias="isSettled"),
) -> ExpenditureFilter:
    return ExpenditureFilter(
        page=page,
        limit=limit,
        start_date=start_date,
        end_date=end_date,
        category=category,
        tag=tag,
        min_amount=min_amount,
        max_amount=max_amount,
        split_type=split_type,
        is_settled=is_settled
    )


@router.post("", response_model=ExpenditureResponse, status_code=status.HTTP_201_CREATED)
async def create_expenditure(
    expenditure_data: ExpenditureCreate,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """
    Record an expenditure paid by the caller.

    - totalAmount defaults to amount
    - splits, when present, must add up to totalAmount (within 0.01)
    """
    repo = ExpenditureRepository(db)
    expenditure = await repo.create_expenditure(expenditure_data, current_user.id)
    return _to_expenditure_response(expenditure)


@router.get("", response_model=ExpenditureListResponse)
async def list_expenditures(
    filters: ExpenditureFilter = Depends(expenditure_filters),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """List expenditures the caller owns or holds a split on, with summaries."""
    repo = ExpenditureRepository(db)
    expenditures, total, summary = await repo.list_expenditures(filters, current_user.id)
    split_summary = await repo.get_split_summary(current_user.id)

    return ExpenditureListResponse(
        expenditures=[_to_expenditure_response(e) for e in expenditures],
        pagination=Pagination(
            total=total,
            page=filters.page,
            pages=math.ceil(total / filters.limit),
            has_more=filters.page * filters.limit < total
        ),
        summary=summary,
        split_summary=split_summary
    )


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Totals over the caller's own expenditures: overall, by category, by month."""
    repo = ExpenditureRepository(db)
    return await repo.get_statistics(current_user.id, start_date, end_date)


@router.get("/settlements", response_model=SettlementSummaryResponse)
async def get_settlements(
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Net balance per counterparty across the caller's unsettled expenditures."""
    repo = ExpenditureRepository(db)
    return await repo.get_settlement_summary(current_user.id)


@router.post("/{expenditure_id}/mark-paid", response_model=ExpenditureResponse)
async def mark_split_paid(
    expenditure_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Mark the caller's own split as paid (participant only)."""
    repo = ExpenditureRepository(db)
    expenditure = await repo.mark_split_paid(expenditure_id, current_user.id)
    return _to_expenditure_response(expenditure)


@router.get("/{expenditure_id}", response_model=ExpenditureResponse)
async def get_expenditure(
    expenditure_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Get an expenditure if the caller owns, paid for, or holds a split on it."""
    repo = ExpenditureRepository(db)
    expenditure = await repo.get_expenditure(expenditure_id, current_user.id)
    return _to_expenditure_response(expenditure)


@router.patch("/{expenditure_id}", response_model=ExpenditureResponse)
async def update_expenditure(
    expenditure_id: str,
    update_data: ExpenditureUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """
    Update an expenditure (owner only).

    Only amount, category, description, date, paymentMethod, tags and
    location can change; splits, totalAmount and isSettled cannot.
    """
    repo = ExpenditureRepository(db)
    expenditure = await repo.update_expenditure(expenditure_id, current_user.id, update_data)
    return _to_expenditure_response(expenditure)


@router.delete("/{expenditure_id}")
async def delete_expenditure(
    expenditure_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Delete an expenditure (owner only)."""
    repo = ExpenditureRepository(db)
    await repo.delete_expenditure(expenditure_id, current_user.id)
    return {"message": "Expenditure deleted successfully"}
