"""Tests for split-sum and amount validation."""
import pytest
from bson import ObjectId

from app.core.errors import ExpenditureValidationError
from app.models.expenditure import Split
from app.utils.expenditure_validation import (
    SPLIT_SUM_MESSAGE,
    splits_total,
    validate_amounts,
    validate_splits,
)


def _splits(*amounts):
    return [Split(user_id=ObjectId(), amount=amount) for amount in amounts]


def test_empty_splits_always_valid():
    validate_splits([], 100.0)
    validate_splits([], 0.0)


def test_exact_sum_is_valid():
    validate_splits(_splits(60, 40), 100)


def test_float_rounding_is_tolerated():
    # 0.1 + 0.2 != 0.3 in binary floating point
    validate_splits(_splits(0.1, 0.2), 0.3)
    validate_splits(_splits(33.33, 33.33, 33.34), 100)


def test_small_difference_within_tolerance():
    validate_splits(_splits(60, 39.995), 100)


def test_mismatch_is_rejected():
    with pytest.raises(ExpenditureValidationError) as exc_info:
        validate_splits(_splits(50, 20), 100)

    assert exc_info.value.details == {"splits": SPLIT_SUM_MESSAGE}
    assert exc_info.value.status_code == 400


def test_overshoot_is_rejected():
    with pytest.raises(ExpenditureValidationError):
        validate_splits(_splits(60, 41), 100)


def test_custom_tolerance():
    validate_splits(_splits(60, 39), 100, tolerance=1.0)
    with pytest.raises(ExpenditureValidationError):
        validate_splits(_splits(60, 39.5), 100, tolerance=0.1)


def test_splits_total():
    assert splits_total(_splits(10, 20.5)) == 30.5
    assert splits_total([]) == 0


def test_validate_amounts_rejects_negatives():
    with pytest.raises(ExpenditureValidationError) as exc_info:
        validate_amounts(-1, -5, _splits(10, -2))

    details = exc_info.value.details
    assert details["amount"] == "Amount cannot be negative"
    assert details["totalAmount"] == "Total amount cannot be negative"
    assert details["splits.1.amount"] == "Split amount cannot be negative"


def test_validate_amounts_accepts_zero_total():
    validate_amounts(10, 0, [])
