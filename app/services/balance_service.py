"""
Balance aggregation across a user's unsettled expenditures.

Netting is done here in application code rather than in a Mongo pipeline,
so it works on whatever list of Expenditure objects the repository returns.

Sign convention (from the caller's point of view):
    +amount  counterparty owes the caller
    -amount  the caller owes the counterparty
"""

from typing import Dict, Iterable, List, Tuple

from bson import ObjectId

from app.models.expenditure import Expenditure
from app.schemas.expenditure import SplitSummary
from app.schemas.settlement import (
    CounterpartyBalance,
    SettlementSummaryResponse,
    SettlementTotals,
    SettlementTransaction,
)


def _round(amount: float) -> float:
    return round(amount, 2)


def _contributions(expenditure: Expenditure, user_id: ObjectId) -> List[Tuple[ObjectId, float]]:
    """Signed (counterparty, amount) pairs this expenditure adds for user_id."""
    if expenditure.paid_by == user_id:
        return [
            (split.user_id, split.amount)
            for split in expenditure.splits
            if split.user_id != user_id and not split.paid
        ]

    # Sum every unpaid split the caller holds, not just the first one
    owed = sum(
        split.amount
        for split in expenditure.splits
        if split.user_id == user_id and not split.paid
    )
    if owed == 0:
        return []
    return [(expenditure.paid_by, -owed)]


def aggregate_balances(expenditures: Iterable[Expenditure], user_id: ObjectId) -> SettlementSummaryResponse:
    """
    Net the caller's unsettled expenditures into one row per counterparty.

    Rows with a zero net are dropped; rows are sorted biggest receivable first.
    """
    totals: Dict[ObjectId, float] = {}
    transactions: Dict[ObjectId, List[SettlementTransaction]] = {}

    for expenditure in expenditures:
        if expenditure.is_settled:
            continue
        for counterparty, amount in _contributions(expenditure, user_id):
            totals[counterparty] = totals.get(counterparty, 0.0) + amount
            transactions.setdefault(counterparty, []).append(
                SettlementTransaction(
                    id=str(expenditure.id),
                    description=expenditure.description,
                    amount=_round(amount),
                    date=expenditure.date
                )
            )

    settlements = [
        CounterpartyBalance(
            counterparty=str(counterparty),
            total_owed=_round(total),
            transactions=transactions[counterparty]
        )
        for counterparty, total in totals.items()
        if _round(total) != 0
    ]
    settlements.sort(key=lambda row: row.total_owed, reverse=True)

    total_to_receive = sum(row.total_owed for row in settlements if row.total_owed > 0)
    total_to_pay = sum(abs(row.total_owed) for row in settlements if row.total_owed < 0)

    return SettlementSummaryResponse(
        settlements=settlements,
        summary=SettlementTotals(
            total_to_receive=_round(total_to_receive),
            total_to_pay=_round(total_to_pay)
        )
    )


def summarize_splits(expenditures: Iterable[Expenditure], user_id: ObjectId) -> SplitSummary:
    """
    What the caller fronted versus what they still owe on others' bills.

    total_paid: total_amount of unsettled expenditures the caller paid for
    total_owed: the caller's unpaid splits on expenditures someone else paid
    """
    total_paid = 0.0
    total_owed = 0.0

    for expenditure in expenditures:
        if expenditure.is_settled:
            continue
        if expenditure.paid_by == user_id:
            total_paid += expenditure.total_amount
        else:
            total_owed += sum(
                split.amount
                for split in expenditure.splits
                if split.user_id == user_id and not split.paid
            )

    return SplitSummary(
        total_paid=_round(total_paid),
        total_owed=_round(total_owed),
        balance=_round(total_paid - total_owed)
    )
