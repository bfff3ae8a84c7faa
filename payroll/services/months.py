from __future__ import annotations

import logging
from dataclasses import dataclass

from payroll.services.month_closure import MonthClosurePolicy
from payroll.services.payouts import PayoutService, SweepResult
from payroll.stores import MonthStatusStore, PayoutStore, ShiftStore
from payroll.utils import ensure_month


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthStatusView:
    month: str
    manually_closed: bool
    calendar_closed: bool

    @property
    def closed(self) -> bool:
        return self.manually_closed or self.calendar_closed


@dataclass(frozen=True)
class ClosureRun:
    user_id: int
    month: str
    sweep: SweepResult


class MonthService:
    def __init__(
        self,
        *,
        months: MonthStatusStore,
        shifts: ShiftStore,
        payouts: PayoutStore,
        closure: MonthClosurePolicy,
        engine: PayoutService,
    ):
        self.months = months
        self.shifts = shifts
        self.payouts = payouts
        self.closure = closure
        self.engine = engine

    async def get_month_status(self, month: str) -> MonthStatusView:
        month = ensure_month(month)
        return MonthStatusView(
            month=month,
            manually_closed=await self.closure.is_manually_closed(month),
            calendar_closed=self.closure.is_calendar_closed(month),
        )

    async def list_month_statuses(self) -> list[MonthStatusView]:
        out: list[MonthStatusView] = []
        for month, closed in await self.months.list_statuses():
            out.append(
                MonthStatusView(month=month, manually_closed=bool(closed), calendar_closed=self.closure.is_calendar_closed(month))
            )
        return out

    async def _users_in_month(self, month: str) -> list[int]:
        ids = set(await self.shifts.users_with_shifts(month))
        ids.update(await self.payouts.users_with_payouts(month))
        return sorted(ids)

    async def set_month_closed(self, month: str, closed: bool) -> list[ClosureRun]:
        """Toggle the manual flag; closing settles every master who worked or was paid that month.

        Reopening does not undo carryovers already made.
        """
        month = ensure_month(month)
        await self.months.set_closed(month, bool(closed))
        logger.info("MONTH_STATUS_SET month=%s closed=%s", month, bool(closed))
        if not closed:
            return []

        runs: list[ClosureRun] = []
        for user_id in await self._users_in_month(month):
            sweep = await self.engine.process_month_closure(user_id, month)
            runs.append(ClosureRun(user_id=user_id, month=month, sweep=sweep))
        return runs

    async def auto_close_finished_months(self) -> list[ClosureRun]:
        runs: list[ClosureRun] = []
        finished: list[str] = []
        for user_id, month in await self.shifts.user_months_with_shifts():
            if not self.closure.is_calendar_closed(month):
                continue
            if await self.closure.is_manually_closed(month):
                continue
            sweep = await self.engine.process_month_closure(user_id, month)
            runs.append(ClosureRun(user_id=user_id, month=month, sweep=sweep))
            if month not in finished:
                finished.append(month)

        # flags go last so every master of a month is processed before it counts as closed
        for month in finished:
            await self.months.set_closed(month, True)
        if finished:
            logger.info("MONTHS_AUTO_CLOSED months=%s runs=%s", ",".join(finished), len(runs))
        return runs
