"""Transaction categories and per-shift imported totals."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from .models import ShiftMatch, Transaction, TransactionCategory

_PROMOTION_LABELS = {"quest", "incentive"}


def categorize(tx: Transaction) -> TransactionCategory:
    """Map a statement label to the bucket it contributes to.

    ``"Tip"`` is a tip, ``"Quest"``/``"Incentive"`` a promotion, bank
    transfers are ignored, and every ride type (UberX, Share, Delivery, ...)
    is net fare.
    """

    label = tx.label.strip().lower()
    if label == "tip":
        return TransactionCategory.TIP
    if label in _PROMOTION_LABELS:
        return TransactionCategory.PROMOTION
    if "transferred to bank" in label:
        return TransactionCategory.IGNORE
    return TransactionCategory.NET_FARE


@dataclass(frozen=True, slots=True)
class TransactionTotals:
    tips: Decimal = Decimal("0")
    tolls_reimbursed: Decimal = Decimal("0")
    promotions: Decimal = Decimal("0")
    net_fare: Decimal = Decimal("0")
    count: int = 0


def totals(transactions: Iterable[Transaction]) -> TransactionTotals:
    tips = tolls = promotions = net_fare = Decimal("0")
    count = 0
    for tx in transactions:
        category = categorize(tx)
        if category is TransactionCategory.IGNORE:
            continue
        count += 1
        if category is TransactionCategory.TIP:
            tips += tx.amount
        elif category is TransactionCategory.PROMOTION:
            promotions += tx.amount
        else:
            net_fare += tx.amount
        if tx.secondary_amount is not None:
            tolls += tx.secondary_amount
    return TransactionTotals(
        tips=tips,
        tolls_reimbursed=tolls,
        promotions=promotions,
        net_fare=net_fare,
        count=count,
    )


def totals_by_shift(matches: Iterable[ShiftMatch]) -> dict[UUID, TransactionTotals]:
    """Aggregate matched transactions per owning shift."""

    grouped: dict[UUID, list[Transaction]] = defaultdict(list)
    for m in matches:
        grouped[m.shift_id].append(m.transaction)
    return {shift_id: totals(txs) for shift_id, txs in grouped.items()}


__all__ = ["categorize", "TransactionTotals", "totals", "totals_by_shift"]
