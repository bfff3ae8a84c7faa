from __future__ import annotations

from decimal import Decimal

from payroll.stores import CarryoverStore, PayoutStore, ShiftStore
from payroll.utils import MONEY_ZERO, last_day_of_month


class LedgerQueries:
    """Read-only sums over shifts, payouts and carryover edges.

    Every call goes to the stores; nothing is cached between calls, so results always
    reflect what is persisted (including rows flushed earlier in the same transaction).
    """

    def __init__(self, *, shifts: ShiftStore, payouts: PayoutStore, carryovers: CarryoverStore):
        self.shifts = shifts
        self.payouts = payouts
        self.carryovers = carryovers

    async def total_earnings(self, user_id: int) -> Decimal:
        return await self.shifts.sum_shift_totals(user_id)

    async def total_payouts(self, user_id: int) -> Decimal:
        return await self.payouts.sum_payout_amounts(user_id)

    async def month_earnings(self, user_id: int, month: str) -> Decimal:
        return await self.shifts.sum_shift_totals(user_id, month=month)

    async def month_payouts_amount(self, user_id: int, month: str) -> Decimal:
        # by attribution month, not by payout date
        return await self.payouts.sum_payout_amounts(user_id, month)

    async def cumulative_earnings_through(self, user_id: int, month: str) -> Decimal:
        return await self.shifts.sum_shift_totals(user_id, date_to=last_day_of_month(month))

    async def global_balance(self, user_id: int) -> Decimal:
        """Positive: the business owes the master. Negative: the master was advanced."""
        earnings = await self.total_earnings(user_id)
        payouts = await self.total_payouts(user_id)
        return earnings - payouts

    async def incoming_carryovers(self, user_id: int, month: str) -> Decimal:
        rows = await self.carryovers.list_by_to(user_id, month)
        return sum((r.amount for r in rows), MONEY_ZERO)

    async def incoming_split_amount(self, user_id: int, month: str) -> Decimal:
        """Money trimmed off closed months and landed here; it widens the month's capacity.

        Sweep carryovers are not counted: they consume the target month's earnings.
        """
        rows = await self.payouts.list_payouts(user_id, month)
        return sum((p.amount for p in rows if p.is_split_carryover), MONEY_ZERO)

    async def month_capacity(self, user_id: int, month: str) -> Decimal:
        earnings = await self.month_earnings(user_id, month)
        return earnings + await self.incoming_split_amount(user_id, month)
