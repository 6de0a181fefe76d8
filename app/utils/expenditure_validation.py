"""Expenditure validation utilities."""
import logging
from typing import Sequence

from app.core.config import settings
from app.core.errors import ExpenditureValidationError
from app.models.expenditure import Split

logger = logging.getLogger(__name__)

SPLIT_SUM_MESSAGE = "Split amounts must add up to the total amount"


def splits_total(splits: Sequence[Split]) -> float:
    """Sum of split amounts."""
    return sum(split.amount for split in splits)


def validate_splits(
    splits: Sequence[Split],
    total_amount: float,
    tolerance: float | None = None
) -> None:
    """
    Validate that splits add up to the expenditure total.

    Rules:
    - an empty split list is always valid (the payer's own expense)
    - otherwise |sum(split.amount) - total_amount| must be <= tolerance
      (0.01 by default, absorbs binary floating-point rounding)
    """
    if not splits:
        return

    if tolerance is None:
        tolerance = settings.SPLIT_TOLERANCE

    split_sum = splits_total(splits)
    if abs(split_sum - total_amount) > tolerance:
        logger.warning(
            "Rejected splits: sum %.4f does not match total %.4f",
            split_sum, total_amount
        )
        raise ExpenditureValidationError({"splits": SPLIT_SUM_MESSAGE})


def validate_amounts(amount: float, total_amount: float, splits: Sequence[Split]) -> None:
    """Non-negative amounts; the schemas enforce this on input, stored documents are re-checked here."""
    details = {}
    if amount < 0:
        details["amount"] = "Amount cannot be negative"
    if total_amount < 0:
        details["totalAmount"] = "Total amount cannot be negative"
    for index, split in enumerate(splits):
        if split.amount < 0:
            details[f"splits.{index}.amount"] = "Split amount cannot be negative"
    if details:
        raise ExpenditureValidationError(details)
