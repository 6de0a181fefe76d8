"""
Settlement state machine for expenditure splits.

Per split:   Unpaid -> Paid   (terminal, no reverse transition)
Per bill:    is_settled is derived from the splits and recomputed whenever
             a split's paid flag changes.

These functions work on a loaded Expenditure and never touch the database;
ExpenditureRepository persists the result.
"""

from datetime import datetime
from typing import Optional, Sequence

from bson import ObjectId

from app.core.errors import NotFoundError
from app.models.base import utcnow
from app.models.expenditure import Expenditure, Split

NOT_FOUND_OR_SETTLED = "Expenditure not found or already settled"
SPLIT_NOT_FOUND = "Split not found for this user"
SPLIT_ALREADY_PAID = "Split already marked as paid"


def compute_is_settled(splits: Sequence[Split], explicit: bool = False) -> bool:
    """
    Derive the settled flag.

    With splits: settled iff every split is paid.
    Without splits: whatever the expenditure was explicitly marked as.
    """
    if not splits:
        return explicit
    return all(split.paid for split in splits)


def mark_split_paid(
    expenditure: Expenditure,
    user_id: ObjectId,
    now: Optional[datetime] = None
) -> Expenditure:
    """
    Transition user_id's split to Paid and recompute is_settled.

    Only the participant can mark their own split. Raises NotFoundError when
    the expenditure is already settled, when user_id has no split on it, or
    when all of its splits are already paid.
    """
    if expenditure.is_settled:
        raise NotFoundError(NOT_FOUND_OR_SETTLED)

    own_splits = [split for split in expenditure.splits if split.user_id == user_id]
    if not own_splits:
        raise NotFoundError(SPLIT_NOT_FOUND)

    # A caller may hold several splits; settle them in order
    split = next((split for split in own_splits if not split.paid), None)
    if split is None:
        raise NotFoundError(SPLIT_ALREADY_PAID)

    split.paid = True
    split.settled_at = now or utcnow()
    expenditure.is_settled = compute_is_settled(expenditure.splits, expenditure.is_settled)
    return expenditure
