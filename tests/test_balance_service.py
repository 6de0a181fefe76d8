"""Tests for counterparty netting and the split summary."""
from datetime import datetime, timezone

from bson import ObjectId

from app.models.expenditure import Expenditure, Split
from app.services.balance_service import aggregate_balances, summarize_splits
from tests.factories import expenditure_doc


def _expenditure(payer, total, splits, **fields) -> Expenditure:
    return Expenditure(**expenditure_doc(payer, total_amount=total, splits=splits, **fields))


def test_payer_sees_participant_owing():
    u, p = ObjectId(), ObjectId()
    bill = _expenditure(u, 100, [Split(user_id=p, amount=60), Split(user_id=u, amount=40, paid=True)])

    result = aggregate_balances([bill], u)

    assert len(result.settlements) == 1
    row = result.settlements[0]
    assert row.counterparty == str(p)
    assert row.total_owed == 60
    assert row.transactions[0].id == str(bill.id)
    assert row.transactions[0].amount == 60
    assert row.transactions[0].description == "Dinner"
    assert result.summary.total_to_receive == 60
    assert result.summary.total_to_pay == 0


def test_participant_sees_payer_as_negative():
    u, p = ObjectId(), ObjectId()
    bill = _expenditure(u, 100, [Split(user_id=p, amount=60), Split(user_id=u, amount=40, paid=True)])

    result = aggregate_balances([bill], p)

    assert len(result.settlements) == 1
    row = result.settlements[0]
    assert row.counterparty == str(u)
    assert row.total_owed == -60
    assert result.summary.total_to_receive == 0
    assert result.summary.total_to_pay == 60


def test_balances_net_across_expenditures():
    u, p = ObjectId(), ObjectId()
    bills = [
        _expenditure(u, 50, [Split(user_id=p, amount=50)], description="Groceries"),
        _expenditure(p, 20, [Split(user_id=u, amount=20)], description="Taxi"),
    ]

    result = aggregate_balances(bills, u)

    row = result.settlements[0]
    assert row.total_owed == 30
    assert [t.description for t in row.transactions] == ["Groceries", "Taxi"]
    assert [t.amount for t in row.transactions] == [50, -20]


def test_zero_net_counterparty_is_dropped():
    u, p = ObjectId(), ObjectId()
    bills = [
        _expenditure(u, 25, [Split(user_id=p, amount=25)]),
        _expenditure(p, 25, [Split(user_id=u, amount=25)]),
    ]

    result = aggregate_balances(bills, u)

    assert result.settlements == []
    assert result.summary.total_to_receive == 0
    assert result.summary.total_to_pay == 0


def test_rows_sorted_biggest_receivable_first():
    u, a, b, c = ObjectId(), ObjectId(), ObjectId(), ObjectId()
    bills = [
        _expenditure(u, 10, [Split(user_id=a, amount=10)]),
        _expenditure(c, 15, [Split(user_id=u, amount=15)]),
        _expenditure(u, 40, [Split(user_id=b, amount=40)]),
    ]

    result = aggregate_balances(bills, u)

    assert [row.counterparty for row in result.settlements] == [str(b), str(a), str(c)]
    assert [row.total_owed for row in result.settlements] == [40, 10, -15]
    assert result.summary.total_to_receive == 50
    assert result.summary.total_to_pay == 15


def test_every_unpaid_participant_counts_for_payer():
    u, a, b = ObjectId(), ObjectId(), ObjectId()
    bill = _expenditure(u, 90, [
        Split(user_id=a, amount=30),
        Split(user_id=b, amount=30, paid=True),
        Split(user_id=u, amount=30, paid=True),
    ])

    result = aggregate_balances([bill], u)

    assert [(row.counterparty, row.total_owed) for row in result.settlements] == [(str(a), 30)]


def test_all_of_callers_splits_are_summed():
    u, p = ObjectId(), ObjectId()
    bill = _expenditure(p, 30, [
        Split(user_id=u, amount=10),
        Split(user_id=u, amount=5),
        Split(user_id=p, amount=15, paid=True),
    ])

    result = aggregate_balances([bill], u)

    assert result.settlements[0].total_owed == -15


def test_settled_expenditures_are_ignored():
    u, p = ObjectId(), ObjectId()
    bill = _expenditure(u, 10, [Split(user_id=p, amount=10, paid=True)])

    assert bill.is_settled is True
    assert aggregate_balances([bill], u).settlements == []


def test_amounts_are_rounded_to_cents():
    u, p = ObjectId(), ObjectId()
    bills = [
        _expenditure(u, 0.1, [Split(user_id=p, amount=0.1)]),
        _expenditure(u, 0.2, [Split(user_id=p, amount=0.2)]),
    ]

    result = aggregate_balances(bills, u)

    assert result.settlements[0].total_owed == 0.3


def test_transaction_carries_expenditure_date():
    u, p = ObjectId(), ObjectId()
    when = datetime(2024, 3, 15, tzinfo=timezone.utc)
    bill = _expenditure(u, 10, [Split(user_id=p, amount=10)], date=when)

    result = aggregate_balances([bill], u)

    assert result.settlements[0].transactions[0].date == when


def test_summarize_splits():
    u, p = ObjectId(), ObjectId()
    bills = [
        _expenditure(u, 100, [Split(user_id=p, amount=60), Split(user_id=u, amount=40, paid=True)]),
        _expenditure(p, 30, [Split(user_id=u, amount=20), Split(user_id=p, amount=10, paid=True)]),
        _expenditure(p, 8, [Split(user_id=u, amount=8, paid=True), Split(user_id=p, amount=0)]),
    ]

    summary = summarize_splits(bills, u)

    assert summary.total_paid == 100
    assert summary.total_owed == 20
    assert summary.balance == 80


def test_summarize_splits_empty():
    summary = summarize_splits([], ObjectId())
    assert (summary.total_paid, summary.total_owed, summary.balance) == (0, 0, 0)
