from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from payroll.enums import MonthPaymentStatus
from payroll.services.ledger import LedgerQueries
from payroll.stores import PayoutStore, ShiftStore
from payroll.utils import MONEY_ZERO, ensure_month


@dataclass(frozen=True)
class MonthSummary:
    month: str
    earned: Decimal
    paid: Decimal
    remaining: Decimal
    progress: int
    status: MonthPaymentStatus


@dataclass(frozen=True)
class PayoutsOverview:
    user_id: int
    global_balance: Decimal
    total_earnings: Decimal
    total_payouts: Decimal
    months: list[MonthSummary]


@dataclass(frozen=True)
class MonthTotals:
    month: str
    earned: Decimal
    paid: Decimal
    remaining: Decimal


def payment_status(paid: Decimal, earned: Decimal) -> MonthPaymentStatus:
    if earned > MONEY_ZERO and paid >= earned:
        return MonthPaymentStatus.CLOSED
    if paid > MONEY_ZERO:
        return MonthPaymentStatus.PARTIAL
    return MonthPaymentStatus.UNPAID


def _progress(paid: Decimal, earned: Decimal) -> int:
    if earned <= MONEY_ZERO:
        return 0
    return int((paid / earned * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize_month(month: str, earned: Decimal, previous_earnings: Decimal, total_payouts: Decimal) -> MonthSummary:
    """All payouts ever made cover the oldest earnings first."""
    reached = max(MONEY_ZERO, total_payouts - previous_earnings)
    paid = min(reached, earned)
    return MonthSummary(
        month=month,
        earned=earned,
        paid=paid,
        remaining=max(MONEY_ZERO, earned - paid),
        progress=_progress(paid, earned),
        status=payment_status(paid, earned),
    )


def allocate_fifo(total_payouts: Decimal, earnings_by_month: Iterable[tuple[str, Decimal]]) -> list[MonthSummary]:
    """Oldest month first in, oldest month first out."""
    out: list[MonthSummary] = []
    cumulative = MONEY_ZERO
    for month, earned in sorted(earnings_by_month, key=lambda x: x[0]):
        out.append(summarize_month(month, earned, cumulative, total_payouts))
        cumulative += earned
    return out


class ReportService:
    def __init__(self, *, ledger: LedgerQueries, shifts: ShiftStore, payouts: PayoutStore):
        self.ledger = ledger
        self.shifts = shifts
        self.payouts = payouts

    async def month_status_by_balance(self, user_id: int, month: str) -> MonthSummary:
        month = ensure_month(month)
        earned = await self.ledger.month_earnings(user_id, month)
        through = await self.ledger.cumulative_earnings_through(user_id, month)
        total_payouts = await self.ledger.total_payouts(user_id)
        return summarize_month(month, earned, through - earned, total_payouts)

    async def payouts_overview(self, user_id: int) -> PayoutsOverview:
        total_earnings = await self.ledger.total_earnings(user_id)
        total_payouts = await self.ledger.total_payouts(user_id)
        months = allocate_fifo(total_payouts, await self.shifts.month_earnings_by_month(user_id))
        months.reverse()
        return PayoutsOverview(
            user_id=int(user_id),
            global_balance=total_earnings - total_payouts,
            total_earnings=total_earnings,
            total_payouts=total_payouts,
            months=months,
        )

    async def month_totals(self, month: str) -> MonthTotals:
        month = ensure_month(month)
        earned = await self.shifts.sum_shift_totals(None, month=month)
        paid = await self.payouts.sum_payout_amounts(None, month)
        return MonthTotals(month=month, earned=earned, paid=paid, remaining=earned - paid)
