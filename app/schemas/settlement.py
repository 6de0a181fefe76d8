from datetime import datetime
from typing import List

from app.schemas.expenditure import CamelModel


class SettlementTransaction(CamelModel):
    """One expenditure's contribution to a counterparty balance (signed)."""
    id: str
    description: str
    amount: float
    date: datetime


class CounterpartyBalance(CamelModel):
    counterparty: str
    total_owed: float      # > 0: counterparty owes caller, < 0: caller owes counterparty
    transactions: List[SettlementTransaction] = []


class SettlementTotals(CamelModel):
    total_to_receive: float = 0
    total_to_pay: float = 0


class SettlementSummaryResponse(CamelModel):
    settlements: List[CounterpartyBalance]
    summary: SettlementTotals
